from __future__ import annotations

from typing import Annotated, Literal, TypeAlias, cast

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..ranges import CellScalar
from ..shared.colors import normalize_hex_color
from .chart_types import SUPPORTED_CHART_TYPES_CSV, normalize_chart_type
from .types import (
    ChartType,
    ConditionalRule,
    FreezeMode,
    OperationKind,
    OutcomeStatus,
)


class _WireModel(BaseModel):
    """Base for agent-facing payloads: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_null_defaults(cls, data: object) -> object:
        """Treat an explicit null like an omitted field when a default exists."""
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        for name, field in cls.model_fields.items():
            if field.is_required() or field.default is None:
                continue
            for key in {name, field.alias or name}:
                if key in payload and payload[key] is None:
                    del payload[key]
        return payload


class RangeInput(_WireModel):
    """Agent-supplied range corners; may be negative, inverted or oversized."""

    start_row: int
    start_col: int
    end_row: int
    end_col: int


class _SheetScoped(_WireModel):
    sheet: int | None = Field(
        default=None,
        description="Zero-based sheet index. Omit to target the active sheet.",
    )


class WriteCell(_SheetScoped):
    """Write a single value into one cell."""

    kind: Literal["write_cell"] = "write_cell"
    row: int = Field(description="Row index (0-based).")
    col: int = Field(description="Column index (0-based).")
    value: CellScalar = Field(description="Value to write.")


class WriteRange(_SheetScoped):
    """Write a 2D block of values anchored at a top-left cell."""

    kind: Literal["write_range"] = "write_range"
    start_row: int
    start_col: int
    values: list[list[CellScalar]] = Field(description="2D array of values.")


class SetFormula(_SheetScoped):
    """Write a formula (text beginning with ``=``) into one cell."""

    kind: Literal["set_formula"] = "set_formula"
    row: int
    col: int
    formula: str

    @field_validator("formula")
    @classmethod
    def _validate_formula(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate.startswith("="):
            raise ValueError("formula must start with '='.")
        return candidate


class FormatCells(_SheetScoped):
    """Sparse formatting patch; omitted attributes are left untouched."""

    kind: Literal["format_cells"] = "format_cells"
    range: RangeInput
    bold: bool | None = None
    background_color: str | None = None
    text_color: str | None = None

    @field_validator("background_color", "text_color")
    @classmethod
    def _validate_color(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_hex_color(value)


class InsertRow(_SheetScoped):
    kind: Literal["insert_row"] = "insert_row"
    index: int
    count: int = Field(default=1, ge=1)


class InsertColumn(_SheetScoped):
    kind: Literal["insert_column"] = "insert_column"
    index: int
    count: int = Field(default=1, ge=1)


class AddSheet(_WireModel):
    kind: Literal["add_sheet"] = "add_sheet"
    name: str | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class RenameSheet(_SheetScoped):
    kind: Literal["rename_sheet"] = "rename_sheet"
    name: str

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("name must not be empty.")
        return candidate


class ReadRange(_SheetScoped):
    """Read cell contents back as text; never mutates the document."""

    kind: Literal["read_range"] = "read_range"
    range: RangeInput


class ClearRange(_SheetScoped):
    kind: Literal["clear_range"] = "clear_range"
    range: RangeInput


class SetColumnWidth(_SheetScoped):
    """Sparse map of column index to pixel width."""

    kind: Literal["set_column_width"] = "set_column_width"
    columns: dict[int, float]

    @field_validator("columns")
    @classmethod
    def _validate_columns(cls, value: dict[int, float]) -> dict[int, float]:
        for col, width in value.items():
            if width <= 0:
                raise ValueError(f"width for column {col} must be > 0.")
        return value


class MergeCells(_SheetScoped):
    kind: Literal["merge_cells"] = "merge_cells"
    range: RangeInput


class FreezePanes(_SheetScoped):
    """Freeze rows through ``row`` and/or columns through ``column``."""

    kind: Literal["freeze_panes"] = "freeze_panes"
    mode: FreezeMode
    row: int | None = None
    column: int | None = None


class ConditionalFormat(_SheetScoped):
    """Static value-driven background fill over a range."""

    kind: Literal["conditional_format"] = "conditional_format"
    range: RangeInput
    rule: ConditionalRule
    threshold: float = 0.0
    color_high: str | None = None
    color_low: str | None = None

    @field_validator("color_high", "color_low")
    @classmethod
    def _validate_color(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_hex_color(value)


class ChartSeries(_WireModel):
    name: str
    values: list[float] = Field(default_factory=list)


class AddChart(_WireModel):
    """Append a chart record for the presentation layer."""

    kind: Literal["add_chart"] = "add_chart"
    id: str | None = None
    chart_type: ChartType
    title: str = ""
    x_labels: list[str] = Field(default_factory=list)
    series: list[ChartSeries] = Field(min_length=1)

    @field_validator("chart_type", mode="before")
    @classmethod
    def _validate_chart_type(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = normalize_chart_type(value)
        if normalized is None:
            raise ValueError(
                f"chart_type must be one of: {SUPPORTED_CHART_TYPES_CSV}."
            )
        return normalized

    @field_validator("x_labels", mode="before")
    @classmethod
    def _coerce_labels(cls, value: object) -> object:
        if isinstance(value, list):
            return ["" if item is None else str(item) for item in value]
        return value

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


Operation: TypeAlias = Annotated[
    WriteCell
    | WriteRange
    | SetFormula
    | FormatCells
    | InsertRow
    | InsertColumn
    | AddSheet
    | RenameSheet
    | ReadRange
    | ClearRange
    | SetColumnWidth
    | MergeCells
    | FreezePanes
    | ConditionalFormat
    | AddChart,
    Field(discriminator="kind"),
]

OPERATION_ADAPTER: TypeAdapter[Operation] = TypeAdapter(Operation)

OPERATION_MODELS: dict[OperationKind, type[BaseModel]] = {
    "write_cell": WriteCell,
    "write_range": WriteRange,
    "set_formula": SetFormula,
    "format_cells": FormatCells,
    "insert_row": InsertRow,
    "insert_column": InsertColumn,
    "add_sheet": AddSheet,
    "rename_sheet": RenameSheet,
    "read_range": ReadRange,
    "clear_range": ClearRange,
    "set_column_width": SetColumnWidth,
    "merge_cells": MergeCells,
    "freeze_panes": FreezePanes,
    "conditional_format": ConditionalFormat,
    "add_chart": AddChart,
}


class ChartRecord(BaseModel):
    """Chart definition handed to the presentation layer."""

    id: str
    chart_type: ChartType
    title: str = ""
    x_labels: list[str] = Field(default_factory=list)
    series: list[ChartSeries] = Field(default_factory=list)


class OperationErrorDetail(BaseModel):
    """Structured error details for a rejected or failed operation."""

    kind: str | None = None
    tool_call_id: str | None = None
    message: str
    hint: str | None = None


class OperationOutcome(BaseModel):
    """Result of executing (or refusing) one operation."""

    kind: str
    tool_call_id: str | None = None
    status: OutcomeStatus = "applied"
    sheet: int | None = None
    target: str | None = None
    output: str | None = None
    error: OperationErrorDetail | None = None


class OperationError(ValueError):
    """Operation error with structured detail."""

    def __init__(self, detail: OperationErrorDetail) -> None:
        super().__init__(detail.message)
        self.detail = detail

    @classmethod
    def from_operation(
        cls,
        kind: str | None,
        exc: Exception,
        *,
        tool_call_id: str | None = None,
    ) -> OperationError:
        """Build an OperationError from an operation kind and exception."""
        detail = OperationErrorDetail(
            kind=kind,
            tool_call_id=tool_call_id,
            message=str(exc),
            hint=_build_hint(kind),
        )
        return cls(detail)


def _build_hint(kind: str | None) -> str | None:
    """List the wire fields the operation expects."""
    model = OPERATION_MODELS.get(cast(OperationKind, kind)) if kind else None
    if model is None:
        known = ", ".join(OPERATION_MODELS)
        return f"Unknown operation. Use one of: {known}."
    required = [
        field.alias or name
        for name, field in model.model_fields.items()
        if name != "kind" and field.is_required()
    ]
    if not required:
        return None
    return f"{kind} requires: {', '.join(required)}."
