"""Plugin manifest schema.

Defines the structure of plugin.yaml files that describe plugin metadata
and the hooks, tools and steering documents a plugin contributes.
"""

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from plugins.hooks import ConditionOperator, HookType
from steering.base import SteeringDocumentType, SteeringMode
from tools.base import PermissionType, ToolCategory


class ConfigField(BaseModel):
    """Schema for a plugin configuration field."""

    type: str = Field(..., description="Field type: str, int, float, bool, path, list")
    default: Any = Field(None, description="Default value")
    description: str = Field("", description="Field description")
    required: bool = Field(False, description="Whether field is required")


class ConditionDeclaration(BaseModel):
    """Gate on a field of the hook payload."""

    field: str = Field(..., description="Dotted path into the hook data")
    operator: ConditionOperator = Field(ConditionOperator.EQUALS, description="Comparison operator")
    value: Any = Field(None, description="Value to compare against")


class HookDeclaration(BaseModel):
    """A hook the plugin attaches to an extension point."""

    name: str = Field(..., description="Extension point, e.g. pre-design")
    type: HookType = Field(HookType.ACTION, description="How returned data is merged")
    handler: str = Field(..., description="Method name on the plugin class")
    phase: str | None = Field(None, description="Phase tag; defaults to the extension point")
    priority: int = Field(100, description="Execution priority (higher = earlier)")
    conditions: list[ConditionDeclaration] = Field(default_factory=list)
    description: str = Field("", description="What the hook does")


class PermissionDeclaration(BaseModel):
    type: PermissionType
    resource: str = "*"
    actions: list[str] = Field(default_factory=list)


class ToolDeclaration(BaseModel):
    """A callable operation the plugin exposes."""

    name: str = Field(..., description="Globally unique tool name")
    description: str = Field(..., description="What the tool does")
    handler: str = Field(..., description="Method name on the plugin class")
    category: ToolCategory = Field(ToolCategory.UTILITY)
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"}, alias="inputSchema")
    output_schema: dict[str, Any] | None = Field(None, alias="outputSchema")
    permissions: list[PermissionDeclaration] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class SteeringVariableDeclaration(BaseModel):
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None


class SteeringDeclaration(BaseModel):
    """A guidance document the plugin contributes."""

    name: str = Field(..., description="Document name, unique within the plugin")
    template: str = Field(..., description="Inline template, or ./path relative to the plugin directory")
    type: SteeringDocumentType = Field(SteeringDocumentType.CUSTOM)
    mode: SteeringMode = Field(SteeringMode.ALWAYS)
    priority: int = Field(50, ge=0, le=1000, description="Higher wins topic conflicts")
    patterns: list[str] = Field(default_factory=list, description="Regular expressions matched against the current file")
    variables: list[SteeringVariableDeclaration] = Field(default_factory=list)
    description: str = ""

    @model_validator(mode="after")
    def validate_patterns(self) -> "SteeringDeclaration":
        if self.mode == SteeringMode.CONDITIONAL and not self.patterns:
            raise ValueError(f"conditional steering document '{self.name}' needs at least one pattern")
        for pattern in self.patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"steering document '{self.name}' has an invalid pattern {pattern!r}: {e}") from e
        return self


class PluginManifest(BaseModel):
    """Plugin manifest schema (plugin.yaml)."""

    # Metadata
    id: str = Field(..., description="Plugin id (alphanumeric, dashes, underscores)")
    name: str = Field("", description="Display name")
    version: str = Field(..., description="Semantic version (e.g., 1.0.0)")
    description: str = Field("", description="Plugin description")
    author: str = Field("", description="Plugin author")

    # Plugin class (module.ClassName); optional for steering-only plugins
    entry: str | None = Field(None, description="Plugin class path (module.ClassName)")

    # Contributions
    hooks: list[HookDeclaration] = Field(default_factory=list)
    tools: list[ToolDeclaration] = Field(default_factory=list)
    steering: list[SteeringDeclaration] = Field(default_factory=list, alias="steeringDocuments")

    # Plugin configuration schema
    config: dict[str, ConfigField] = Field(
        default_factory=dict,
        description="Configuration schema for plugin settings",
    )

    enabled_by_default: bool = Field(True, description="Enable plugin by default")

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate plugin id format."""
        if not isinstance(v, str) or not re.match(r"^[a-zA-Z][a-zA-Z0-9_-]*$", v):
            raise ValueError("id must start with letter and contain only alphanumeric, dashes, underscores")
        return v

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate semantic version format."""
        if not re.match(r"^\d+\.\d+\.\d+", str(v)):
            raise ValueError("version must be semantic (e.g., 1.0.0)")
        return str(v)

    @field_validator("entry", mode="before")
    @classmethod
    def validate_entry(cls, v: str | None) -> str | None:
        """Validate entry class format."""
        if v is not None and "." not in v:
            raise ValueError("entry must be in format 'module.ClassName'")
        return v

    @model_validator(mode="after")
    def validate_handlers(self) -> "PluginManifest":
        if (self.hooks or self.tools) and not self.entry:
            raise ValueError("plugins declaring hooks or tools must set 'entry'")
        if not self.name:
            self.name = self.id

        tool_names = [t.name for t in self.tools]
        duplicates = {n for n in tool_names if tool_names.count(n) > 1}
        if duplicates:
            raise ValueError(f"duplicate tool names: {', '.join(sorted(duplicates))}")
        return self

    class Config:
        populate_by_name = True
