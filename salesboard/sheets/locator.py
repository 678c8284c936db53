"""Spreadsheet URL parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from ..errors import InvalidLocatorError

_SHEET_ID_RE = re.compile(r"/d/([a-zA-Z0-9_-]+)")
_GID_RE = re.compile(r"[?#&]gid=([0-9]+)")
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{20,}$")


@dataclass(frozen=True)
class SheetLocator:
    spreadsheet_id: str
    gid: str | None = None
    tab_name: str | None = None

    def export_url(self, base: str) -> str:
        return f"{base.rstrip('/')}/{self.spreadsheet_id}/export?format=csv&gid={self.gid or '0'}"

    def with_tab(self, tab_name: str | None = None, gid: str | None = None) -> "SheetLocator":
        return SheetLocator(
            spreadsheet_id=self.spreadsheet_id,
            gid=gid if gid is not None else self.gid,
            tab_name=tab_name if tab_name is not None else self.tab_name,
        )


def parse_sheet_url(url: str, tab_name: str | None = None) -> SheetLocator:
    """Extract the spreadsheet id and optional gid from a sheet URL.

    A bare spreadsheet id is accepted as well.
    """
    url = (url or "").strip()
    match = _SHEET_ID_RE.search(url)
    if match:
        spreadsheet_id = match.group(1)
    elif _BARE_ID_RE.match(url):
        spreadsheet_id = url
    else:
        raise InvalidLocatorError(f"Could not find a spreadsheet id in {url!r}")

    gid_match = _GID_RE.search(url)
    return SheetLocator(
        spreadsheet_id=spreadsheet_id,
        gid=gid_match.group(1) if gid_match else None,
        tab_name=tab_name,
    )


def quote_tab_range(title: str) -> str:
    """A1 range covering a whole tab, URL-encoded for the values endpoint."""
    return quote("'" + title.replace("'", "''") + "'", safe="")
