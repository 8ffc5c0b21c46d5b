"""Request and response models for document evaluation."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from linecalc.config import MAX_DECIMAL_PLACES, MAX_FUNCTION_DEPTH, MAX_SCIENTIFIC_EXPONENT
from linecalc.document.models import CrossLineReference, LineRecord

MAX_LINES = 5000
MAX_LINE_LENGTH = 4000


class ReferenceIn(BaseModel):
    """A placeholder in a line standing for another line's result."""

    model_config = ConfigDict(extra="forbid")

    placeholder: Annotated[str, Field(min_length=1)]
    target_line_id: str | None = None
    target_line_number: Annotated[int | None, Field(ge=1)] = None
    fallback: str | None = None

    def to_reference(self) -> CrossLineReference:
        return CrossLineReference(
            placeholder=self.placeholder,
            target_line_id=self.target_line_id,
            target_line_number=self.target_line_number,
            fallback=self.fallback,
        )


class LineIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    text: Annotated[str, Field(max_length=MAX_LINE_LENGTH)]
    references: list[ReferenceIn] = Field(default_factory=list)


class SettingsIn(BaseModel):
    """Optional overrides of the default evaluation settings."""

    model_config = ConfigDict(extra="forbid")

    decimal_places: Annotated[int | None, Field(ge=0, le=MAX_DECIMAL_PLACES)] = None
    # Sign and lower bounds are left to CalcSettings and reported as INVALID_SETTINGS.
    scientific_upper_exponent: Annotated[int | None, Field(le=MAX_SCIENTIFIC_EXPONENT)] = None
    scientific_lower_exponent: Annotated[int | None, Field(ge=-MAX_SCIENTIFIC_EXPONENT)] = None
    trim_trailing_zeros: bool | None = None
    group_thousands: bool | None = None
    live_result_enabled: bool | None = None
    max_function_depth: Annotated[int | None, Field(le=MAX_FUNCTION_DEPTH)] = None


class EvaluateDocumentRequest(BaseModel):
    """Request body for POST /v1/documents/evaluate."""

    model_config = ConfigDict(extra="forbid")

    lines: Annotated[list[LineIn], Field(max_length=MAX_LINES)]
    settings: SettingsIn | None = None
    today: date | None = None

    def to_records(self) -> list[LineRecord]:
        return [
            LineRecord(
                line_id=line.id or f"line-{number}",
                text=line.text,
                references=tuple(ref.to_reference() for ref in line.references),
            )
            for number, line in enumerate(self.lines, start=1)
        ]


class RenderResultOut(BaseModel):
    kind: str
    line_number: int
    expression: str
    result: str
    display_text: str
    variable_name: str | None = None
    error_kind: str | None = None
    error_message: str | None = None
    value: dict[str, Any] | None = None
    live: bool = False


class LineStateOut(BaseModel):
    has_error: bool
    error_message: str | None = None
    display_text: str


class VariableOut(BaseModel):
    name: str
    value: dict[str, Any]
    raw_expression: str
    unit: str | None = None
    line_id: str | None = None
    line_number: int | None = None


class EvaluateDocumentResponse(BaseModel):
    """Response for POST /v1/documents/evaluate.

    ``statuses`` and ``suppressed`` are keyed by line number as a string.
    """

    results: list[RenderResultOut]
    line_states: dict[str, LineStateOut]
    statuses: dict[str, str]
    suppressed: dict[str, str]
    variables: list[VariableOut]
    error_count: int
    live_metrics: dict[str, Any]
