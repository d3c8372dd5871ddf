"""
Tests for core.normalizer: the request shapes an LLM client sends collapse to one canonical form.

How to run
----------
From the project root:

  python -m pytest tests/test_normalizer.py -v
"""

import json

import pytest

from core.normalizer import NAME_REQUIRED_MESSAGE, NormalizationError, normalize_request


def test_canonical_request_passes_through():
    req = normalize_request({"name": "memberpress_info", "parameters": {"type": "summary"}})
    assert req.name == "memberpress_info"
    assert req.parameters == {"type": "summary"}


def test_legacy_tool_field_renamed_to_name():
    req = normalize_request({"tool": "wpcli", "parameters": {"command": "wp user list"}})
    assert req.name == "wpcli"
    assert req.parameters == {"command": "wp user list"}


def test_missing_name_raises():
    with pytest.raises(NormalizationError) as exc:
        normalize_request({"parameters": {"type": "summary"}})
    assert str(exc.value) == NAME_REQUIRED_MESSAGE


def test_non_mapping_raises():
    with pytest.raises(NormalizationError):
        normalize_request("not json at all")
    with pytest.raises(NormalizationError):
        normalize_request(["name", "wpcli"])


def test_json_string_request_is_parsed():
    req = normalize_request(json.dumps({"name": "wp_api", "parameters": {"action": "get_users"}}))
    assert req.name == "wp_api"
    assert req.parameters["action"] == "get_users"


def test_nested_parameters_with_type_are_flattened():
    req = normalize_request({
        "name": "memberpress_info",
        "parameters": {"parameters": {"type": "members"}},
    })
    assert req.parameters == {"type": "members"}


def test_nested_parameters_with_action_override_outer():
    req = normalize_request({
        "name": "wp_api",
        "parameters": {"action": "get_post", "parameters": {"action": "create_post", "title": "T"}},
    })
    assert req.parameters == {"action": "create_post", "title": "T"}


def test_doubly_nested_parameters_are_flattened():
    req = normalize_request({
        "name": "memberpress_info",
        "parameters": {"parameters": {"type": "summary", "parameters": {"limit": "5"}}},
    })
    assert "parameters" not in req.parameters
    assert req.parameters == {"type": "summary", "limit": 5}


def test_tool_request_blob_merged_and_price_coerced():
    blob = json.dumps({"name": "create_membership", "parameters": {"title": "Gold", "price": "19.99"}})
    req = normalize_request({"name": "wp_api", "parameters": {"tool_request": blob}})
    assert "tool_request" not in req.parameters
    assert req.parameters["title"] == "Gold"
    assert req.parameters["price"] == pytest.approx(19.99)


def test_top_level_tool_request_wrapper_unwrapped():
    inner = json.dumps({"name": "plugin_logs", "parameters": {"days": "7"}})
    req = normalize_request({"tool_request": inner})
    assert req.name == "plugin_logs"
    assert req.parameters["days"] == 7


def test_json_blob_parameter_with_type_marker_merged():
    blob = json.dumps({"type": "membership", "parameters": {"title": "Silver", "price": 5}})
    req = normalize_request({"name": "wp_api", "parameters": {"action": "create_post", "data": blob}})
    assert req.parameters["title"] == "Silver"
    assert req.parameters["price"] == 5


def test_json_blob_without_parameters_merges_top_level_fields():
    blob = json.dumps({"name": "Bronze", "price": "9"})
    req = normalize_request({"name": "wp_api", "parameters": {"action": "create_post", "membership": blob}})
    assert req.parameters["name"] == "Bronze"
    assert req.parameters["price"] == 9.0


def test_malformed_json_blob_left_untouched():
    bad = '{"type": "membership", "title": '
    req = normalize_request({"name": "wp_api", "parameters": {"action": "create_post", "data": bad}})
    assert req.parameters["data"] == bad
    assert "title" not in req.parameters


def test_top_level_fields_fold_into_parameters():
    req = normalize_request({"tool": "wpcli", "command": "wp post list"})
    assert req.parameters == {"command": "wp post list"}
    assert req.source["command"] == "wp post list"


@pytest.mark.parametrize("raw", [
    {"name": "memberpress_info", "parameters": {"type": "summary"}},
    {"tool": "wpcli", "parameters": {"command": "wp user list"}},
    {"name": "wp_api", "parameters": {"parameters": {"action": "create_post", "title": "T"}}},
    {"name": "memberpress_info", "parameters": {"parameters": {"type": "summary", "parameters": {"limit": "5"}}}},
    {"name": "wp_api", "parameters": {"tool_request": json.dumps({"parameters": {"price": "3.5"}})}},
    {"name": "wp_api", "parameters": {"data": json.dumps({"name": "Gold", "price": "10"})}},
])
def test_normalize_is_idempotent(raw):
    """Normalizing the canonical form again changes nothing."""
    once = normalize_request(raw)
    twice = normalize_request(once.to_dict())
    assert twice == once
