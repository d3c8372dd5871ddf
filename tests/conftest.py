"""
Shared fixtures for the tool pipeline tests: a default config, a registry with the built-in tools,
and factories for a ToolContext/ToolPipeline wired with the fakes from tests/fakes.py.
"""

import pytest

from base.config import AssistantConfig
from base.tools import ToolContext, ToolRegistry
from core.pipeline import ToolPipeline
from tools.builtin import register_builtin_tools


@pytest.fixture
def config():
    return AssistantConfig()


@pytest.fixture
def registry():
    reg = ToolRegistry()
    register_builtin_tools(reg)
    return reg


@pytest.fixture
def make_context(config, registry):
    def _make(**kwargs):
        kwargs.setdefault("config", config)
        kwargs.setdefault("registry", registry)
        return ToolContext(**kwargs)
    return _make


@pytest.fixture
def make_pipeline(make_context):
    def _make(**kwargs):
        return ToolPipeline(make_context(**kwargs))
    return _make
