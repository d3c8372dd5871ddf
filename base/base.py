"""
Shared request and result types for the tool pipeline.

Dataclasses are used for values that flow between pipeline stages; pydantic models
are used only at the HTTP boundary (request bodies).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


# Raw, untrusted tool call as sent by the LLM client. Any of: {name, parameters},
# {tool, parameters}, {tool_request: "<json>"}, or a JSON string of one of those.
ToolRequest = Union[Dict[str, Any], str]


class ResultKind(str, Enum):
    TEXT = "text"
    TABLE = "table"
    STRUCTURED = "structured"
    ERROR = "error"


@dataclass
class ToolOutput:
    """
    What a tool handler produced. The formatter branches on kind only:
    TEXT and TABLE carry a string, STRUCTURED carries a mapping or list, ERROR carries the message.
    """

    kind: ResultKind
    value: Any
    command_type: Optional[str] = None
    command: Optional[str] = None  # originating command text, used to classify tables
    action: Optional[str] = None  # wp_api action, echoed in failure envelopes

    @classmethod
    def text(cls, value: str, command: Optional[str] = None) -> "ToolOutput":
        return cls(ResultKind.TEXT, value, command=command)

    @classmethod
    def table(cls, value: str, command: Optional[str] = None, command_type: Optional[str] = None) -> "ToolOutput":
        return cls(ResultKind.TABLE, value, command_type=command_type, command=command)

    @classmethod
    def structured(cls, value: Any, command_type: Optional[str] = None) -> "ToolOutput":
        return cls(ResultKind.STRUCTURED, value, command_type=command_type)

    @classmethod
    def error(cls, message: str, action: Optional[str] = None) -> "ToolOutput":
        return cls(ResultKind.ERROR, message, action=action)


@dataclass
class CanonicalRequest:
    """Normalized tool call: a name and one flat parameter mapping. source keeps the raw top-level mapping."""

    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    source: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "parameters": dict(self.parameters)}


@dataclass
class ValidationOutcome:
    accepted: bool
    command: CanonicalRequest
    message: str = ""
    bypassed: bool = False


@dataclass
class ExecutionResult:
    """Result of one dispatch. result is None only when success is False."""

    success: bool
    tool: str
    result: Optional[ToolOutput] = None
    error: Optional[str] = None
    action: Optional[str] = None

    @classmethod
    def failure(cls, tool: str, error: str, action: Optional[str] = None) -> "ExecutionResult":
        return cls(success=False, tool=tool, error=error, action=action)


@dataclass
class ConversationMessage:
    role: str
    content: str
    markers: List[str] = field(default_factory=list)


class ConversationMessageModel(BaseModel):
    role: str
    content: str = ""
    markers: List[str] = []


class ToolCallBody(BaseModel):
    """Body of POST /api/tools/call."""

    tool_request: Union[Dict[str, Any], str]
    messages: List[ConversationMessageModel] = Field(default_factory=list)
    original_message: Optional[str] = None
