"""
Register the tool API routes on a FastAPI app. No dependency on core.app to avoid circular imports.
"""

from typing import Any

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from core.routes import auth, tool_routes


def register_all_routes(app: Any, pipeline: Any) -> None:
    """Register /api/tools, /api/tools/call and /api/health on app, with API-key auth from the pipeline's config."""
    verify_auth = auth.get_verify_auth(pipeline.context.config)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error("Validation error: {} for request: {}", exc, exc.body)
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "Invalid request body", "detail": jsonable_encoder(exc.errors())},
        )

    app.add_api_route(
        "/api/tools",
        tool_routes.get_api_tools_list_handler(pipeline),
        methods=["GET"],
        dependencies=[Depends(verify_auth)],
    )
    app.add_api_route(
        "/api/tools/call",
        tool_routes.get_api_tools_call_handler(pipeline),
        methods=["POST"],
        dependencies=[Depends(verify_auth)],
    )
    app.add_api_route("/api/health", tool_routes.get_api_health_handler(pipeline), methods=["GET"])
