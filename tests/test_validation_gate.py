"""
Tests for core.validation: bypass rules, fail-open/fail-closed policy, and the plugin-path validator.

How to run
----------
  python -m pytest tests/test_validation_gate.py -v
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from base.base import CanonicalRequest
from core.validation import (
    CONTINUE_SUFFIX,
    RuleBasedValidator,
    ValidationGate,
    bypass_reason,
    find_plugin_path,
)

PLUGINS = [
    {"path": "akismet/akismet", "name": "Akismet Anti-spam"},
    {"path": "memberpress-gifting/memberpress-gifting", "name": "MemberPress Gifting"},
    {"path": "memberpress/memberpress", "name": "MemberPress"},
]


def _request(name, **params):
    return CanonicalRequest(name=name, parameters=params, source={"name": name, "parameters": params})


def test_bypass_reasons():
    assert bypass_reason(_request("memberpress_info", type="summary")) == "tool_name"
    assert bypass_reason(_request("wp_api", action="get_post", post_id=1)) == "action"
    assert bypass_reason(_request("wpcli", command="wp post list --post_type=page")) == "command_prefix"
    assert bypass_reason(_request("wpcli", command="wp user list")) == "safe_command"
    assert bypass_reason(_request("wpcli", command="wp plugin activate akismet")) is None


def test_legacy_tool_field_bypass():
    req = CanonicalRequest(name="x", parameters={}, source={"tool": "memberpress_info"})
    assert bypass_reason(req) == "legacy_tool_field"


@pytest.mark.asyncio
async def test_bypassed_request_never_reaches_validator():
    """get_post is exempt: the validator is not called at all."""
    validator = MagicMock()
    validator.validate = AsyncMock(return_value={"success": False, "message": "no"})
    gate = ValidationGate(validator)
    outcome = await gate.validate(_request("wp_api", action="get_post", post_id=3))
    assert outcome.accepted is True
    assert outcome.bypassed is True
    validator.validate.assert_not_called()


@pytest.mark.asyncio
async def test_rejection_fail_open_keeps_original():
    validator = MagicMock()
    validator.validate = AsyncMock(return_value={"success": False, "message": "Plugin not found"})
    gate = ValidationGate(validator, policy="fail_open")
    req = _request("wpcli", command="wp plugin activate foo")
    outcome = await gate.validate(req, original_message="activate foo")
    assert outcome.accepted is True
    assert outcome.command == req
    assert outcome.message == "Plugin not found" + CONTINUE_SUFFIX
    intent = validator.validate.call_args[0][0]
    assert intent["command_type"] == "tool_call"
    assert intent["command_data"] == {"name": "wpcli", "parameters": {"command": "wp plugin activate foo"}}
    assert intent["original_message"] == "activate foo"


@pytest.mark.asyncio
async def test_rejection_fail_closed_is_not_accepted():
    validator = MagicMock()
    validator.validate = AsyncMock(return_value={"success": False, "message": "Plugin not found"})
    gate = ValidationGate(validator, policy="fail_closed")
    outcome = await gate.validate(_request("wpcli", command="wp plugin activate foo"))
    assert outcome.accepted is False
    assert outcome.message == "Plugin not found"


@pytest.mark.asyncio
async def test_validator_exception_degrades_to_accept():
    validator = MagicMock()
    validator.validate = AsyncMock(side_effect=RuntimeError("validator down"))
    gate = ValidationGate(validator, policy="fail_closed")
    req = _request("wpcli", command="wp plugin activate foo")
    outcome = await gate.validate(req)
    assert outcome.accepted is True
    assert outcome.command == req
    assert outcome.message.startswith("Command validation bypassed due to error")
    assert "validator down" in outcome.message


@pytest.mark.asyncio
async def test_sync_validator_supported():
    validator = MagicMock()
    validator.validate = MagicMock(return_value={
        "success": True,
        "validated_command": {"name": "wpcli", "parameters": {"command": "wp plugin activate akismet/akismet"}},
        "message": "corrected",
    })
    gate = ValidationGate(validator)
    outcome = await gate.validate(_request("wpcli", command="wp plugin activate akismet"))
    assert outcome.accepted is True
    assert outcome.command.parameters["command"] == "wp plugin activate akismet/akismet"


@pytest.mark.asyncio
async def test_non_dict_result_accepts_original():
    validator = MagicMock()
    validator.validate = AsyncMock(return_value=None)
    req = _request("wpcli", command="wp plugin activate foo")
    outcome = await ValidationGate(validator).validate(req)
    assert outcome.accepted is True
    assert outcome.command == req


@pytest.mark.asyncio
async def test_disabled_gate_skips_validator():
    validator = MagicMock()
    validator.validate = AsyncMock()
    outcome = await ValidationGate(validator, enabled=False).validate(_request("wpcli", command="wp plugin list"))
    assert outcome.accepted is True
    validator.validate.assert_not_called()


def test_find_plugin_path_variants():
    assert find_plugin_path("akismet/akismet", PLUGINS) == "akismet/akismet"
    assert find_plugin_path("akismet", PLUGINS) == "akismet/akismet"
    assert find_plugin_path("akismet/wrong-file", PLUGINS) == "akismet/akismet"
    assert find_plugin_path("memberpress-gifting", PLUGINS) == "memberpress-gifting/memberpress-gifting"
    assert find_plugin_path("MemberPress Gifting", PLUGINS) == "memberpress-gifting/memberpress-gifting"
    assert find_plugin_path("Akismet Anti-spam", PLUGINS) == "akismet/akismet"


def test_find_plugin_path_unknown():
    assert find_plugin_path("no-such-thing", PLUGINS) is None
    assert find_plugin_path("", PLUGINS) is None
    assert find_plugin_path("akismet", []) is None


class _Site:
    def __init__(self, plugins=None, error=None):
        self._plugins = plugins
        self._error = error

    async def get_plugins(self):
        if self._error:
            raise self._error
        return self._plugins


@pytest.mark.asyncio
async def test_rule_validator_corrects_wp_api_plugin():
    validator = RuleBasedValidator(_Site(PLUGINS))
    intent = {"command_data": {"name": "wp_api", "parameters": {"action": "activate_plugin", "plugin": "akismet"}}}
    result = await validator.validate(intent)
    assert result["success"] is True
    assert result["validated_command"]["parameters"]["plugin"] == "akismet/akismet"
    assert result["message"] == "Plugin path corrected from 'akismet' to 'akismet/akismet'"


@pytest.mark.asyncio
async def test_rule_validator_corrects_wpcli_plugin_command():
    validator = RuleBasedValidator(_Site(PLUGINS))
    intent = {"command_data": {"name": "wpcli", "parameters": {"command": "wp plugin deactivate memberpress-gifting"}}}
    result = await validator.validate(intent)
    assert result["success"] is True
    assert result["validated_command"]["parameters"]["command"] == (
        "wp plugin deactivate memberpress-gifting/memberpress-gifting"
    )


@pytest.mark.asyncio
async def test_rule_validator_unknown_plugin_lists_available():
    validator = RuleBasedValidator(_Site(PLUGINS))
    intent = {"command_data": {"name": "wp_api", "parameters": {"action": "activate_plugin", "plugin": "no-such-thing"}}}
    result = await validator.validate(intent)
    assert result["success"] is False
    assert "no-such-thing" in result["message"]
    assert "Akismet Anti-spam" in result["message"]


@pytest.mark.asyncio
async def test_rule_validator_permissive_without_plugin_list():
    validator = RuleBasedValidator(_Site(error=RuntimeError("offline")))
    intent = {"command_data": {"name": "wp_api", "parameters": {"action": "activate_plugin", "plugin": "whatever"}}}
    result = await validator.validate(intent)
    assert result["success"] is True
    assert "bypassed" in result["message"]
