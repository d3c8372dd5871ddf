"""
Tool API routes: list tools (function-calling schema), call a tool, health.
Tool failures are returned as the envelope with status 200; only bad bodies get 4xx.
"""
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from base.base import ToolCallBody
from base.conversation import InMemoryConversation


def get_api_tools_list_handler(pipeline):
    """Return handler for GET /api/tools."""
    async def api_tools_list():
        return JSONResponse(content={"tools": pipeline.tool_schemas()})
    return api_tools_list


def get_api_tools_call_handler(pipeline):
    """Return handler for POST /api/tools/call. Body: ToolCallBody (tool_request + optional messages)."""
    async def api_tools_call(body: ToolCallBody):
        conversation = InMemoryConversation.from_payload(body.messages) if body.messages else None
        envelope = await pipeline.process_tool_request(
            body.tool_request,
            conversation=conversation,
            original_message=body.original_message or "",
        )
        if not envelope.get("success"):
            logger.info("Tool call failed: {}", envelope.get("error"))
        return JSONResponse(content=jsonable_encoder(envelope))
    return api_tools_call


def get_api_health_handler(pipeline):
    """Return handler for GET /api/health."""
    async def api_health():
        return JSONResponse(content={"ok": True, "tools": len(pipeline.tool_schemas())})
    return api_health
