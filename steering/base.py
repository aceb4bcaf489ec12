"""Steering document types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SteeringMode(str, Enum):
    """When a steering document is included automatically."""

    ALWAYS = "always"
    CONDITIONAL = "conditional"  # Only when a pattern matches the current file
    MANUAL = "manual"  # Only through explicit lookup


class SteeringDocumentType(str, Enum):
    """Topic of a steering document. Same-type documents can conflict."""

    PRODUCT = "product"
    TECHNICAL = "technical"
    STRUCTURE = "structure"
    QUALITY = "quality"
    PROCESS = "process"
    CUSTOM = "custom"


@dataclass
class SteeringVariable:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None


@dataclass
class SteeringDocument:
    """Guidance template contributed by a plugin.

    ``patterns`` are regular expressions (``r"\\.py$"``, ``r"^src/api/"``)
    searched in the current file path; only used in CONDITIONAL mode.
    """

    name: str
    template: str
    type: SteeringDocumentType = SteeringDocumentType.CUSTOM
    mode: SteeringMode = SteeringMode.ALWAYS
    priority: int = 50
    patterns: list[str] = field(default_factory=list)
    variables: list[SteeringVariable] = field(default_factory=list)
    description: str = ""
    plugin_id: str = ""

    def __post_init__(self) -> None:
        self.type = SteeringDocumentType(self.type)
        self.mode = SteeringMode(self.mode)

    @property
    def id(self) -> str:
        return f"{self.plugin_id}:{self.name}"


@dataclass
class SteeringContext:
    """What the caller is working on when asking for guidance."""

    current_file: str | None = None
    project_path: str | None = None
    phase: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SteeringResult:
    """A rendered, applicable steering document."""

    document_id: str
    plugin_id: str
    name: str
    type: SteeringDocumentType
    mode: SteeringMode
    priority: int
    content: str
    variables: dict[str, Any] = field(default_factory=dict)
    conflicts_with: list[str] = field(default_factory=list)
