"""Tests for the CSV tokenizer and row numbering."""

from __future__ import annotations

from salesboard.sheets.csv_tokenizer import is_blank, parse_csv, rows_from_records, tokenize


class TestTokenize:
    def test_quoted_fields(self):
        text = 'Name,Email,Notes\n"Doe, Jane",jane@x.com,"said ""hi"""\n'
        assert tokenize(text) == [
            ["Name", "Email", "Notes"],
            ["Doe, Jane", "jane@x.com", 'said "hi"'],
        ]

    def test_crlf_and_lf_terminate_records(self):
        assert tokenize("a,b\r\n1,2\n3,4") == [["a", "b"], ["1", "2"], ["3", "4"]]

    def test_newline_inside_quotes(self):
        assert tokenize('a,b\n"line one\nline two",2\n') == [["a", "b"], ["line one\nline two", "2"]]

    def test_empty_fields(self):
        assert tokenize("a,,c\n,,\n") == [["a", "", "c"], ["", "", ""]]

    def test_byte_order_mark_stripped(self):
        assert tokenize("\ufeffName,Email\n") == [["Name", "Email"]]

    def test_empty_text(self):
        assert tokenize("") == []

    def test_trailing_comma_keeps_empty_field(self):
        assert tokenize("a,b,\n") == [["a", "b", ""]]


class TestParseCsv:
    def test_round_trip_example(self):
        headers, rows = parse_csv('Name,Email,Notes\n"Doe, Jane",jane@x.com,"said ""hi"""\n')
        assert headers == ["Name", "Email", "Notes"]
        assert len(rows) == 1
        assert rows[0].values == {"Name": "Doe, Jane", "Email": "jane@x.com", "Notes": 'said "hi"'}
        assert rows[0].row_number == 2

    def test_blank_rows_skipped_but_counted(self):
        headers, rows = parse_csv("Name,Email\nA,a@x.com\n,\n\nB,b@x.com\n")
        assert [r.values["Name"] for r in rows] == ["A", "B"]
        assert [r.row_number for r in rows] == [2, 5]

    def test_leading_blank_rows_before_header(self):
        headers, rows = parse_csv("\n,\nName\nA\n")
        assert headers == ["Name"]
        assert rows[0].row_number == 4

    def test_multiline_cell_is_one_sheet_row(self):
        _, rows = parse_csv('Name,Notes\nA,"first\nsecond"\nB,x\n')
        assert rows[0].values["Notes"] == "first\nsecond"
        assert [r.row_number for r in rows] == [2, 3]

    def test_headers_trimmed(self):
        headers, _ = parse_csv(" Name , Email \nA,a@x.com\n")
        assert headers == ["Name", "Email"]

    def test_short_rows_padded_long_rows_truncated(self):
        _, rows = parse_csv("a,b,c\n1\n1,2,3,4,5\n")
        assert rows[0].values == {"a": "1", "b": "", "c": ""}
        assert rows[1].values == {"a": "1", "b": "2", "c": "3"}

    def test_duplicate_headers_last_wins(self):
        headers, rows = parse_csv("Email,Email\nfirst@x.com,second@x.com\n")
        assert headers == ["Email", "Email"]
        assert rows[0].get("Email") == "second@x.com"

    def test_header_only(self):
        headers, rows = parse_csv("Name,Email\n")
        assert headers == ["Name", "Email"]
        assert rows == []


def test_rows_from_records_offset():
    headers, rows = rows_from_records([["h"], ["v"]], first_row_number=10)
    assert headers == ["h"]
    assert rows[0].row_number == 11


def test_is_blank():
    assert is_blank(["", "  "])
    assert is_blank([])
    assert not is_blank(["", "x"])
