"""
End-to-end tests for core.pipeline.ToolPipeline: raw request in, response envelope out.

Collaborators are the in-memory fakes from tests/fakes.py; no network, no host WP-CLI.

How to run
----------
  python -m pytest tests/test_pipeline.py -v

  # Single test
  python -m pytest tests/test_pipeline.py -v -k "test_create_post_recovers_content"
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from base.base import ConversationMessage
from base.config import AssistantConfig
from base.conversation import InMemoryConversation
from base.tools import ToolDefinition
from core.normalizer import NAME_REQUIRED_MESSAGE
from core.pipeline import TOOL_NOT_FOUND_MESSAGE
from core.validation import RuleBasedValidator
from fakes import FakeCommerce, FakeSite


@pytest.mark.asyncio
async def test_summary_with_empty_backend(make_pipeline):
    pipeline = make_pipeline(commerce=FakeCommerce())
    env = await pipeline.process_tool_request({"name": "memberpress_info", "parameters": {"type": "summary"}})
    assert env["success"] is True
    assert env["tool"] == "memberpress_info"
    assert env["command_type"] == "summary"
    lines = env["result"].splitlines()
    assert lines[1:5] == ["Total Members\t0", "Total Memberships\t0", "Total Transactions\t0", "Total Subscriptions\t0"]


@pytest.mark.asyncio
async def test_legacy_tool_field_user_list(make_pipeline):
    pipeline = make_pipeline(site=FakeSite())
    env = await pipeline.process_tool_request({"tool": "wpcli", "parameters": {"command": "wp user list"}})
    assert env["success"] is True
    assert env["tool"] == "wpcli"
    assert env["command_type"] == "user_list"
    assert env["result"].startswith("ID\tUser Login")


@pytest.mark.asyncio
async def test_create_post_recovers_content(make_pipeline):
    site = FakeSite()
    pipeline = make_pipeline(site=site)
    conversation = InMemoryConversation([
        ConversationMessage("user", "Draft a post about our launch"),
        ConversationMessage("assistant", "# My Title\nContent:\nHello world"),
        ConversationMessage("user", "Looks good, create it"),
    ])
    env = await pipeline.process_tool_request(
        {"name": "wp_api", "parameters": {"action": "create_post"}}, conversation=conversation
    )
    assert env["success"] is True
    assert site.actions == [("create_post", {"title": "My Title", "content": "Hello world", "status": "draft"})]


@pytest.mark.asyncio
async def test_create_page_without_conversation_uses_placeholders(make_pipeline):
    site = FakeSite()
    env = await make_pipeline(site=site).process_tool_request({"name": "wp_api", "parameters": {"action": "create_page"}})
    assert env["success"] is True
    action, params = site.actions[0]
    assert action == "create_page"
    assert params["title"] == "New Page"
    assert params["content"]
    assert params["status"] == "draft"


@pytest.mark.asyncio
async def test_missing_required_parameter_named(make_pipeline):
    env = await make_pipeline().process_tool_request({"name": "wpcli", "parameters": {}})
    assert env == {"success": False, "error": "Missing required parameter: command", "tool": "wpcli"}


@pytest.mark.asyncio
async def test_missing_name(make_pipeline):
    env = await make_pipeline().process_tool_request({"parameters": {"type": "summary"}})
    assert env == {"success": False, "error": NAME_REQUIRED_MESSAGE, "tool": "unknown"}


@pytest.mark.asyncio
async def test_unknown_tool(make_pipeline):
    env = await make_pipeline().process_tool_request({"name": "delete_everything", "parameters": {}})
    assert env["success"] is False
    assert env["error"] == TOOL_NOT_FOUND_MESSAGE
    assert env["tool"] == "delete_everything"


@pytest.mark.asyncio
async def test_disabled_tool(make_pipeline):
    config = AssistantConfig(tools_enabled={"wpcli": False})
    pipeline = make_pipeline(config=config)
    env = await pipeline.process_tool_request({"name": "wpcli", "parameters": {"command": "wp user list"}})
    assert env == {"success": False, "error": "Tool is disabled: wpcli", "tool": "wpcli"}
    assert "wpcli" not in [t["function"]["name"] for t in pipeline.tool_schemas()]


@pytest.mark.asyncio
async def test_allow_list_enforced(make_pipeline):
    config = AssistantConfig(allowed_commands=["wp user"], enforce_command_allowlist=True)
    pipeline = make_pipeline(config=config, site=FakeSite())
    blocked = await pipeline.process_tool_request({"name": "wpcli", "parameters": {"command": "wp db drop --yes"}})
    assert blocked == {"success": False, "error": "Command not allowed: wp db drop --yes", "tool": "wpcli"}
    allowed = await pipeline.process_tool_request({"name": "wpcli", "parameters": {"command": "wp user list"}})
    assert allowed["success"] is True


@pytest.mark.asyncio
async def test_allow_list_not_enforced_by_default(make_pipeline):
    env = await make_pipeline().process_tool_request({"name": "wpcli", "parameters": {"command": "wp db drop --yes"}})
    assert env["success"] is True
    assert env["result"].startswith("The AI assistant cannot directly run WP-CLI commands")


@pytest.mark.asyncio
async def test_handler_exception_becomes_failure(make_pipeline, registry):
    async def explode(args, ctx):
        raise RuntimeError("kaboom")

    registry.register(ToolDefinition(
        name="exploder", description="always fails", parameters={"type": "object", "properties": {}}, execute_async=explode,
    ))
    env = await make_pipeline().process_tool_request({"name": "exploder", "parameters": {}})
    assert env == {"success": False, "error": "kaboom", "tool": "exploder"}


@pytest.mark.asyncio
async def test_plugin_path_corrected_before_dispatch(make_pipeline):
    site = FakeSite()
    pipeline = make_pipeline(site=site, validator=RuleBasedValidator(site))
    env = await pipeline.process_tool_request(
        {"name": "wp_api", "parameters": {"action": "activate_plugin", "plugin": "MemberPress Gifting"}}
    )
    assert env["success"] is True
    assert site.actions == [("activate_plugin", {"plugin": "memberpress-gifting/memberpress-gifting"})]


@pytest.mark.asyncio
async def test_validator_rejection_fail_open_runs_original(make_pipeline):
    validator = MagicMock()
    validator.validate = AsyncMock(return_value={"success": False, "message": "looks risky"})
    site = FakeSite()
    env = await make_pipeline(site=site, validator=validator).process_tool_request(
        {"name": "wp_api", "parameters": {"action": "get_users"}}
    )
    assert env["success"] is True
    assert site.actions[0][0] == "get_users"


@pytest.mark.asyncio
async def test_validator_rejection_fail_closed(make_pipeline):
    validator = MagicMock()
    validator.validate = AsyncMock(return_value={"success": False, "message": "looks risky"})
    site = FakeSite()
    config = AssistantConfig(validation_policy="fail_closed")
    env = await make_pipeline(config=config, site=site, validator=validator).process_tool_request(
        {"name": "wp_api", "parameters": {"action": "get_users"}}
    )
    assert env == {"success": False, "error": "looks risky", "tool": "wp_api", "action": "get_users"}
    assert site.actions == []


@pytest.mark.asyncio
async def test_memberpress_action_on_wp_api_fails_with_action(make_pipeline):
    env = await make_pipeline(site=FakeSite()).process_tool_request(
        {"name": "wp_api", "parameters": {"action": "create_membership", "title": "Gold"}}
    )
    assert env["success"] is False
    assert env["action"] == "create_membership"
    assert "memberpress_info" in env["error"]


@pytest.mark.asyncio
async def test_wp_api_without_site_is_unavailable(make_pipeline):
    env = await make_pipeline().process_tool_request({"name": "wp_api", "parameters": {"action": "get_plugins"}})
    assert env["success"] is True
    assert env["result"]["available"] is False


@pytest.mark.asyncio
async def test_json_string_request(make_pipeline):
    raw = json.dumps({"tool_request": json.dumps({"name": "memberpress_info", "parameters": {"type": "summary"}})})
    env = await make_pipeline(commerce=FakeCommerce()).process_tool_request(raw)
    assert env["success"] is True
    assert env["tool"] == "memberpress_info"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [
    "",
    "[]",
    {"name": 5},
    {"name": "wpcli", "parameters": "not json"},
    {"name": "wp_api", "parameters": {"action": None}},
    {"tool": "memberpress_info", "parameters": {"type": ["summary"]}},
])
async def test_success_is_always_boolean(make_pipeline, raw):
    env = await make_pipeline(site=FakeSite(), commerce=FakeCommerce()).process_tool_request(raw)
    assert isinstance(env["success"], bool)
    if not env["success"]:
        assert env["error"]
        assert env["tool"]
