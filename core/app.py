"""
FastAPI application for the tool API.
"""

from fastapi import FastAPI

from core.pipeline import ToolPipeline
from core.route_registration import register_all_routes


def create_app(pipeline: ToolPipeline) -> FastAPI:
    app = FastAPI(title="MemberPress AI Assistant Tools", version="0.1.0")
    register_all_routes(app, pipeline)
    return app
