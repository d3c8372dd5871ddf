"""
Response formatter: ExecutionResult -> response envelope.

Envelope: {"success": True, "tool": ..., "result": ...} or {"success": False, "error": ..., "tool": ...}.
Tabular results also carry "command_type", inferred from the originating command when the tool
did not set one.
"""

from typing import Any, Dict, Optional

from base.base import ExecutionResult, ResultKind

# Ordered: the first keyword found in the command text wins.
COMMAND_TYPE_KEYWORDS = (
    ("wp user list", "user_list"),
    ("wp post list", "post_list"),
    ("wp plugin list", "plugin_list"),
    ("memberships", "membership_list"),
    ("transactions", "transaction_list"),
    ("members", "member_list"),
    ("subscriptions", "subscription_list"),
)
DEFAULT_COMMAND_TYPE = "tabular_data"


def classify_command(command: Optional[str]) -> str:
    text = (command or "").lower()
    for keyword, command_type in COMMAND_TYPE_KEYWORDS:
        if keyword in text:
            return command_type
    return DEFAULT_COMMAND_TYPE


def looks_tabular(value: Any) -> bool:
    return isinstance(value, str) and ("\t" in value or "\n" in value)


def failure_envelope(tool: str, error: str, action: Optional[str] = None) -> Dict[str, Any]:
    envelope = {"success": False, "error": error, "tool": tool or "unknown"}
    if action:
        envelope["action"] = action
    return envelope


def format_result(result: ExecutionResult) -> Dict[str, Any]:
    if not result.success or result.result is None:
        return failure_envelope(result.tool, result.error or "Unknown error", result.action)

    output = result.result
    envelope: Dict[str, Any] = {"success": True, "tool": result.tool}
    if output.kind == ResultKind.ERROR:
        return failure_envelope(result.tool, str(output.value), output.action)
    if output.kind == ResultKind.TABLE:
        envelope["command_type"] = output.command_type or classify_command(output.command)
    elif output.kind == ResultKind.TEXT:
        if looks_tabular(output.value):
            envelope["command_type"] = output.command_type or classify_command(output.command)
    elif output.kind == ResultKind.STRUCTURED:
        if output.command_type:
            envelope["command_type"] = output.command_type
    envelope["result"] = output.value
    return envelope
