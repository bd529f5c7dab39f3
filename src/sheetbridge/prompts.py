from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .ops.models import OPERATION_MODELS
from .ops.specs import get_description
from .snapshot import EMPTY_SNAPSHOT

_SYSTEM_PROMPT_TEMPLATE = """\
You are a spreadsheet assistant working on a live workbook.
Change the workbook only by calling the provided tools.

Rules:
- Rows and columns are zero-based (row 0 is spreadsheet row 1, col 0 is column A).
- Formulas are strings beginning with '='.
- Colors are hex strings such as "#c8e6c9".
- Omit "sheet" to target the active sheet.
- Prefer write_range for blocks of values over many write_cell calls.

Current spreadsheet state:
{snapshot}
"""


class ToolDefinition(BaseModel):
    """Agent-facing tool description with a JSON schema for its arguments."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)


def tool_definitions() -> list[ToolDefinition]:
    """Describe every operation kind as a tool, in vocabulary order."""
    return [
        ToolDefinition(
            name=kind,
            description=get_description(kind),
            parameters=_parameters_schema(model),
        )
        for kind, model in OPERATION_MODELS.items()
    ]


def build_system_prompt(snapshot: str | None) -> str:
    """Embed the current snapshot into the agent's system prompt."""
    text = snapshot.strip() if snapshot else ""
    return _SYSTEM_PROMPT_TEMPLATE.format(snapshot=text or EMPTY_SNAPSHOT)


def _parameters_schema(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema(by_alias=True)
    schema.pop("title", None)
    schema.pop("description", None)
    properties = schema.get("properties", {})
    properties.pop("kind", None)
    if "required" in schema:
        schema["required"] = [name for name in schema["required"] if name != "kind"]
    return schema
