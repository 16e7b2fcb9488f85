"""Block schema: the typed output contract between the chat core and the UI.

The renderer pattern-matches on ``type``; keep the seven tags and their
field names stable.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ActionItem(_Frozen):
    id: str | None = None
    kind: Literal["primary", "secondary", "ghost"] | None = None
    label: str
    action: str
    params: dict[str, Any] | None = None
    meta: str | None = None


class StatsItem(_Frozen):
    label: str
    value: str
    caption: str | None = None
    trend: Literal["up", "down", "neutral"] | None = None


class FileItem(_Frozen):
    id: str | None = None
    name: str
    description: str | None = None
    meta: str | None = None
    action: ActionItem | None = None


class FormFieldOption(_Frozen):
    label: str
    value: str


class FormField(_Frozen):
    id: str
    label: str
    placeholder: str | None = None
    type: Literal["text", "number", "email", "tel", "select"] | None = None
    value: str | None = None
    options: list[FormFieldOption] | None = None
    required: bool | None = None


class _BlockBase(_Frozen):
    id: str | None = None
    v: int = 1


class TextBlock(_BlockBase):
    type: Literal["text"] = "text"
    md: str


class StatsBlock(_BlockBase):
    type: Literal["stats"] = "stats"
    items: list[StatsItem]


class TableBlock(_BlockBase):
    type: Literal["table"] = "table"
    columns: list[str]
    rows: list[list[str | int | float | None]]
    footnote: str | None = None


class ActionsBlock(_BlockBase):
    type: Literal["actions"] = "actions"
    items: list[ActionItem]


class FileBlock(_BlockBase):
    type: Literal["file"] = "file"
    files: list[FileItem]


class FormBlock(_BlockBase):
    type: Literal["form"] = "form"
    title: str | None = None
    description: str | None = None
    fields: list[FormField]
    submit: ActionItem


class SuggestBlock(_BlockBase):
    type: Literal["suggest"] = "suggest"
    chips: list[str]


Block = Annotated[
    Union[TextBlock, StatsBlock, TableBlock, ActionsBlock, FileBlock, FormBlock, SuggestBlock],
    Field(discriminator="type"),
]

BLOCK_TYPES = ("text", "stats", "table", "actions", "file", "form", "suggest")

_blocks_adapter = TypeAdapter(list[Block])


def parse_blocks(raw: Any) -> list[Block]:
    """Validate a remote ``blocks`` payload; raises pydantic.ValidationError."""
    return _blocks_adapter.validate_python(raw)


def dump_blocks(blocks: list[Block]) -> list[dict[str, Any]]:
    return [b.model_dump(exclude_none=True) for b in blocks]


def text(md: str) -> TextBlock:
    return TextBlock(md=md)
