"""
Tests for core.allowlist: prefix matching and the enforce switch.

How to run
----------
  python -m pytest tests/test_allowlist.py -v
"""

from core.allowlist import CommandGate, is_command_allowed


def test_prefix_match_is_literal():
    prefixes = ["wp plugin", "php -v"]
    assert is_command_allowed("wp plugin list", prefixes) is True
    assert is_command_allowed("php -v", prefixes) is True
    assert is_command_allowed("WP plugin list", prefixes) is False
    assert is_command_allowed(" wp plugin list", prefixes) is False
    assert is_command_allowed("wp db drop", prefixes) is False


def test_empty_allow_list_allows_nothing():
    assert is_command_allowed("wp plugin list", []) is False
    assert is_command_allowed("wp plugin list", None) is False


def test_non_string_command_rejected():
    assert is_command_allowed(None, ["wp"]) is False


def test_gate_not_enforcing_lets_everything_through():
    gate = CommandGate(["wp plugin"], enforce=False)
    assert gate.check("wp db drop") is True


def test_gate_enforcing_blocks_unlisted():
    gate = CommandGate(["wp plugin"], enforce=True)
    assert gate.check("wp plugin list") is True
    assert gate.check("wp db drop") is False
