from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SchemaType = Literal["string", "number", "boolean"]

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class PropertySchema(BaseModel):
    type: SchemaType = "string"
    description: Optional[str] = None
    enum: Optional[list[str]] = None
    pattern: Optional[str] = None
    format: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class InputSchema(BaseModel):
    type: Literal["object"] = "object"
    properties: dict[str, PropertySchema] = Field(default_factory=dict)
    required: Optional[list[str]] = None

    def to_json_schema(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ToolAnnotations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    read_only_hint: Optional[bool] = Field(default=None, alias="readOnlyHint")
    destructive_hint: Optional[bool] = Field(default=None, alias="destructiveHint")

    def to_dict(self) -> dict[str, bool]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExportedTool(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")
    annotations: dict[str, bool] = Field(default_factory=dict)


class ToolManifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    site: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="generatedAt")
    generated_by: str = Field(alias="generatedBy")
    tools: list[ExportedTool] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: InputSchema
    handler: ToolHandler = field(compare=False, repr=False)
    annotations: ToolAnnotations = field(default_factory=ToolAnnotations)

    def export(self) -> ExportedTool:
        """Listing form of the descriptor; the handler is never exported."""
        return ExportedTool(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema.to_json_schema(),
            annotations=self.annotations.to_dict(),
        )

    def to_dict(self) -> dict[str, Any]:
        return self.export().model_dump(by_alias=True)
