"""
Dispatcher: run the bound request through its tool's executor and return an ExecutionResult.

Every exception raised by an executor is caught here and turned into a failure result; nothing
escapes to the caller. BackendUnavailable from the information and API tools is an expected
condition and becomes a successful "unavailable" result instead.
"""

import inspect
from typing import Any, Dict

from loguru import logger

from backends.interfaces import BackendUnavailable
from base.base import ExecutionResult, ResultKind, ToolOutput
from base.tools import ToolContext, ToolDefinition
from tools.builtin import unavailable_output

# Route kind per built-in tool; anything else is a generic callback.
ROUTES = {
    "wpcli": "command",
    "memberpress_info": "information",
    "wp_api": "api",
    "plugin_logs": "log_query",
}


def route_for(name: str) -> str:
    return ROUTES.get(name, "callback")


def to_output(raw: Any, command: str = None) -> ToolOutput:
    """Coerce a generic callback's return value into a ToolOutput."""
    if isinstance(raw, ToolOutput):
        return raw
    if raw is None:
        return ToolOutput.text("")
    if isinstance(raw, str):
        return ToolOutput.text(raw, command=command)
    if isinstance(raw, dict) and raw.get("success") is False and raw.get("error"):
        return ToolOutput.error(str(raw["error"]), action=raw.get("action"))
    return ToolOutput.structured(raw)


class Dispatcher:
    async def dispatch(self, tool: ToolDefinition, params: Dict[str, Any], context: ToolContext) -> ExecutionResult:
        route = route_for(tool.name)
        logger.debug("Dispatching {} via {} route", tool.name, route)
        try:
            raw = tool.execute_async(params, context)
            if inspect.isawaitable(raw):
                raw = await raw
        except BackendUnavailable as e:
            if route in ("information", "api"):
                logger.info("{}: backend unavailable: {}", tool.name, e)
                return ExecutionResult(success=True, tool=tool.name, result=unavailable_output(e))
            logger.warning("Tool {} failed: {}", tool.name, e)
            return ExecutionResult.failure(tool.name, str(e))
        except Exception as e:
            logger.exception("Tool {} failed: {}", tool.name, e)
            return ExecutionResult.failure(tool.name, str(e) or type(e).__name__, action=params.get("action"))

        output = to_output(raw, command=params.get("command"))
        if output.kind == ResultKind.ERROR:
            return ExecutionResult.failure(tool.name, str(output.value), action=output.action)
        return ExecutionResult(success=True, tool=tool.name, result=output)
