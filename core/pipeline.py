"""
Tool pipeline: one tool call from raw request to response envelope.

Stages, in order: normalize -> content recovery (wp_api create_post/create_page only) -> validation
gate -> tool lookup and enable check -> parameter binding -> allow-list (wpcli only) -> dispatch ->
format. Stages run one after another; each boundary converts its errors into a failure envelope,
so process_tool_request always returns a dict with a boolean "success".
"""

import json
from typing import Any, Dict

from loguru import logger

from base.base import CanonicalRequest, ToolRequest
from base.tools import MissingParameterError, ToolContext
from core.allowlist import CommandGate
from core.content_recovery import needs_recovery, recover_content_parameters
from core.dispatcher import Dispatcher
from core.formatter import failure_envelope, format_result
from core.log_helpers import _truncate_for_log
from core.normalizer import NAME_REQUIRED_MESSAGE, NormalizationError, normalize_request
from core.validation import ValidationGate

TOOL_NOT_FOUND_MESSAGE = "Tool not found or invalid"


class ToolPipeline:
    """Built once with the shared ToolContext; safe to reuse for every request."""

    def __init__(self, context: ToolContext, validation_gate: ValidationGate = None, command_gate: CommandGate = None):
        config = context.config
        self.context = context
        self.registry = context.registry
        self.validation_gate = validation_gate or ValidationGate(
            context.validator,
            policy=getattr(config, "validation_policy", "fail_open"),
            enabled=getattr(config, "validation_enabled", True),
        )
        self.command_gate = command_gate or CommandGate(
            getattr(config, "allowed_commands", []),
            enforce=getattr(config, "enforce_command_allowlist", False),
        )
        self.dispatcher = Dispatcher()

    def tool_schemas(self):
        return self.registry.get_openai_tools(getattr(self.context.config, "tools_enabled", {}))

    def _recover(self, request: CanonicalRequest, context: ToolContext) -> CanonicalRequest:
        action = request.parameters.get("action")
        if request.name != "wp_api" or not isinstance(action, str):
            return request
        if not needs_recovery(action, request.parameters) and request.parameters.get("status"):
            return request
        try:
            params = recover_content_parameters(action, request.parameters, context.conversation)
        except Exception as e:
            logger.warning("Content recovery failed for {}: {}; continuing without it", action, e)
            return request
        return CanonicalRequest(name=request.name, parameters=params, source=request.source)

    async def process_tool_request(
        self,
        raw: ToolRequest,
        conversation: Any = None,
        original_message: str = "",
    ) -> Dict[str, Any]:
        """Run one tool call. Never raises."""
        try:
            return await self._process(raw, conversation, original_message)
        except Exception as e:
            logger.exception("Tool pipeline failed: {}", e)
            tool = (raw.get("name") or raw.get("tool")) if isinstance(raw, dict) else None
            return failure_envelope(str(tool or "unknown"), str(e) or type(e).__name__)

    async def _process(self, raw: ToolRequest, conversation: Any, original_message: str) -> Dict[str, Any]:
        logger.debug("Tool request: {}", _truncate_for_log(raw if isinstance(raw, str) else json.dumps(raw, default=str)))
        try:
            request = normalize_request(raw)
        except NormalizationError as e:
            logger.warning("Tool request could not be normalized: {}", e)
            return failure_envelope("unknown", str(e) or NAME_REQUIRED_MESSAGE)

        context = self.context.for_request(conversation, original_message)
        request = self._recover(request, context)

        outcome = await self.validation_gate.validate(request, context, original_message)
        if not outcome.accepted:
            return failure_envelope(request.name, outcome.message, request.parameters.get("action"))
        request = outcome.command

        if request.name not in self.registry:
            logger.warning("Unknown tool requested: {}", request.name)
            return failure_envelope(request.name, TOOL_NOT_FOUND_MESSAGE)
        tool = self.registry.get(request.name)
        if not self.context.config.is_tool_enabled(tool.name):
            return failure_envelope(tool.name, f"Tool is disabled: {tool.name}")

        try:
            params = tool.bind(request.parameters)
        except MissingParameterError as e:
            logger.info("Tool {}: {}", tool.name, e)
            return failure_envelope(tool.name, str(e))

        if tool.name == "wpcli" and not self.command_gate.check(params.get("command", "")):
            return failure_envelope(tool.name, f"Command not allowed: {params.get('command', '')}")

        result = await self.dispatcher.dispatch(tool, params, context)
        envelope = format_result(result)
        logger.debug("Tool {} finished: success={}", tool.name, envelope.get("success"))
        return envelope

