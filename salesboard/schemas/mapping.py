"""Column mapping schemas.

Stored mappings are accepted in both snake_case and the camelCase spellings
used by older connections (``sourceColumn``, ``targetField``, ``customKey``).
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ColumnMapping(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_column: str = Field(
        validation_alias=AliasChoices("source_column", "sourceColumn", "sheetColumn")
    )
    target_field: str = Field(
        default="skip",
        validation_alias=AliasChoices("target_field", "targetField", "dbField"),
    )
    confidence: int = 50
    transformation: str = "none"
    custom_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("custom_key", "customKey", "customFieldKey"),
    )
    time_column: str | None = Field(
        default=None,
        validation_alias=AliasChoices("time_column", "timeColumn"),
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value):
        from ..sync.suggestion import normalize_confidence

        return normalize_confidence(value)

    @field_validator("target_field", mode="before")
    @classmethod
    def _empty_target_is_skip(cls, value):
        return value or "skip"

    @property
    def is_dropped(self) -> bool:
        return self.target_field in ("skip", "ignore", "")


class MappingSuggestion(BaseModel):
    entity_type: str
    mappings: list[ColumnMapping] = []
    warnings: list[str] = []
    suggested_defaults: dict[str, str] = {}
    confidence: int = 50


class TabAnalysis(BaseModel):
    tab_name: str | None = None
    gid: str | None = None
    headers: list[str] = []
    row_count: int = 0
    entity_type: str
    confidence: int = 50
    mappings: list[ColumnMapping] = []
    warnings: list[str] = []
    suggested_defaults: dict[str, str] = {}
    sample_rows: list[dict[str, str]] = []
    slow: bool = False
    error_code: str | None = None
    error: str | None = None


class AnalyzeRequest(BaseModel):
    sheet_url: str
    tab_names: list[str] | None = None
    entity_type_hint: str | None = None


class AnalyzeResponse(BaseModel):
    spreadsheet_id: str
    tabs: list[TabAnalysis] = []
