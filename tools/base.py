"""Tool types shared by the tool registry and plugins."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class ToolStatus(Enum):
    """Status of a tool execution."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class ToolCategory(str, Enum):
    """Discovery categories for registered tools."""

    SDD = "sdd"
    QUALITY = "quality"
    TEMPLATE = "template"
    FILE_SYSTEM = "file-system"
    NETWORK = "network"
    DATA = "data"
    UTILITY = "utility"
    INTEGRATION = "integration"


class PermissionType(str, Enum):
    """Capabilities a tool declares it needs. Informational only."""

    FILE_READ = "file:read"
    FILE_WRITE = "file:write"
    FILE_EXECUTE = "file:execute"
    NETWORK_REQUEST = "network:request"
    SYSTEM_INFO = "system:info"
    ENVIRONMENT = "environment"
    STORAGE = "storage"


@dataclass
class ToolPermission:
    type: PermissionType
    resource: str = "*"
    actions: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = PermissionType(self.type)


@dataclass
class ToolResult:
    """Result of a tool execution."""

    status: ToolStatus
    output: Any = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == ToolStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ToolExecutionContext:
    """Caller information passed to tool handlers."""

    plugin_id: str = ""
    project_path: str | None = None
    user: str | None = None
    session: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


ToolHandler = Callable[[dict[str, Any], ToolExecutionContext], Any]


@dataclass
class ToolRegistration:
    """A callable operation contributed by a plugin.

    ``name`` is a global key across all plugins. ``input_schema`` and
    ``output_schema`` are JSON Schema documents.
    """

    name: str
    description: str
    handler: ToolHandler
    category: ToolCategory = ToolCategory.UTILITY
    input_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object"})
    output_schema: dict[str, Any] | None = None
    permissions: list[ToolPermission] = field(default_factory=list)
    plugin_id: str = ""

    def __post_init__(self) -> None:
        self.category = ToolCategory(self.category)


class BaseTool(ABC):
    """Class-based way to write a tool.

    Subclasses set the class attributes and implement ``execute``; the
    registry only ever sees the registration produced by ``to_registration``.
    """

    name: str = "base_tool"
    description: str = "Base tool interface"
    category: ToolCategory = ToolCategory.UTILITY
    input_schema: dict[str, Any] = {"type": "object"}
    output_schema: dict[str, Any] | None = None
    permissions: list[ToolPermission] = []

    @abstractmethod
    def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> Any:
        """Execute the tool operation.

        Args:
            input: Arguments, already validated against ``input_schema``
            context: Caller information

        Returns:
            A ToolResult, or any value to be used as successful output
        """
        ...

    def to_registration(self) -> ToolRegistration:
        return ToolRegistration(
            name=self.name,
            description=self.description,
            handler=self.execute,
            category=self.category,
            input_schema=dict(self.input_schema),
            output_schema=self.output_schema,
            permissions=list(self.permissions),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
