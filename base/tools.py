"""
Tool layer: callable tools (name + parameter schema + executor) and the context passed to them.

Design goals:
- Clear and simple to extend: add a tool = register(ToolDefinition(...)).
- No inheritance required; one ToolDefinition dataclass per tool.
- Registry builds the OpenAI-compatible function list and binds arguments by schema.
- No global registry: the registry lives on ToolContext, which is built once at startup
  and handed to every pipeline stage.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger


class MissingParameterError(ValueError):
    """A required parameter was absent after normalization and content recovery."""

    def __init__(self, parameter: str):
        super().__init__(f"Missing required parameter: {parameter}")
        self.parameter = parameter


@dataclass
class ToolContext:
    """
    Context passed to every tool executor. Built once (core.initialization.build_context);
    for_request() returns a shallow copy carrying the per-request conversation.
    """

    config: Any  # AssistantConfig
    registry: "ToolRegistry"
    conversation: Optional[Any] = None  # ConversationAccessor
    commerce: Optional[Any] = None  # CommerceBackend
    site: Optional[Any] = None  # SiteBackend
    plugin_logs: Optional[Any] = None  # PluginLogStore
    system_info: Optional[Any] = None  # SystemInfoProvider
    validator: Optional[Any] = None  # Validator
    host_cli: Optional[Any] = None  # tools.wpcli.HostCli
    original_message: str = ""

    def for_request(self, conversation: Optional[Any] = None, original_message: str = "") -> "ToolContext":
        return replace(self, conversation=conversation, original_message=original_message or "")


# Executor: (arguments: dict, context: ToolContext) -> ToolOutput | str | dict, sync or async.
ToolExecutor = Callable[[Dict[str, Any], ToolContext], Any]


@dataclass
class ToolDefinition:
    """
    One callable tool: name, description, JSON Schema for parameters, and executor.
    properties keep declaration order; each entry may carry type, enum, default, description.
    To add a new tool: create ToolDefinition(...) and registry.register(tool).
    """

    name: str
    description: str
    parameters: Dict[str, Any]  # {"type": "object", "properties": {...}, "required": [...]}
    execute_async: ToolExecutor
    additional_parameters: bool = False  # keep arguments not declared in properties (wp_api)

    @property
    def properties(self) -> Dict[str, Dict[str, Any]]:
        return self.parameters.get("properties", {}) or {}

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []) or [])

    def to_openai_function(self) -> Dict[str, Any]:
        """OpenAI/OpenAI-compatible function descriptor for chat API."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.properties,
                    "required": self.required,
                },
            },
        }

    def bind(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Bind arguments to the schema: declared parameters in declaration order, defaults for
        absent optional ones, then undeclared ones when additional_parameters is set.
        Raises MissingParameterError for the first absent required parameter.
        Enum values are not enforced; a mismatch is logged and passed on.
        """
        arguments = arguments or {}
        required = self.required
        bound: Dict[str, Any] = {}
        for pname, spec in self.properties.items():
            value = arguments.get(pname)
            if value is None or (isinstance(value, str) and value == "" and pname in required):
                if pname in required:
                    raise MissingParameterError(pname)
                if isinstance(spec, dict) and "default" in spec:
                    bound[pname] = spec["default"]
                continue
            enum = spec.get("enum") if isinstance(spec, dict) else None
            if enum and value not in enum:
                logger.warning("Tool {}: value {!r} for {} is not one of {}", self.name, value, pname, enum)
            bound[pname] = value
        for pname in required:
            if pname in bound:
                continue
            if arguments.get(pname) in (None, ""):
                raise MissingParameterError(pname)
            bound[pname] = arguments[pname]
        if self.additional_parameters:
            for k, v in arguments.items():
                if k not in bound:
                    bound[k] = v
        return bound


class ToolRegistry:
    """
    Central registry of tools. The pipeline uses it to build the tools list for the LLM
    and to look up a tool by name.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool by name. Overwrites if same name."""
        if not tool.name or not tool.description:
            raise ValueError("Tool name and description are required")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: {}", tool.name)

    def extend(self, tools: Iterable[ToolDefinition]) -> int:
        """Extension hook: merge extra tool definitions (same name replaces). Returns how many were merged."""
        count = 0
        for tool in tools:
            self.register(tool)
            count += 1
        return count

    def unregister(self, name: str) -> bool:
        """Remove a tool by name. Returns True if it was present."""
        if name in self._tools:
            del self._tools[name]
            logger.debug("Unregistered tool: {}", name)
            return True
        return False

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def list_tools(self, enabled: Optional[Dict[str, bool]] = None) -> List[ToolDefinition]:
        enabled = enabled or {}
        return [t for t in self._tools.values() if enabled.get(t.name, True)]

    def get_openai_tools(self, enabled: Optional[Dict[str, bool]] = None) -> List[Dict[str, Any]]:
        """List of tool descriptors for OpenAI-compatible chat API (tools=...)."""
        return [t.to_openai_function() for t in self.list_tools(enabled)]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
