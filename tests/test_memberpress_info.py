"""
Tests for the memberpress_info and wp_api tools (tools.builtin).

How to run
----------
  python -m pytest tests/test_memberpress_info.py -v
"""

import pytest

from backends.interfaces import UPSELL_URL, BackendUnavailable
from base.base import ResultKind
from fakes import FakeCommerce, FakeSite
from tools.builtin import (
    memberpress_info_executor,
    render_summary,
    render_system_info,
    wp_api_executor,
)


def test_render_summary_zero_counts():
    """An empty summary still renders the four metric rows with 0."""
    lines = render_summary({}).splitlines()
    assert lines == [
        "Metric\tValue",
        "Total Members\t0",
        "Total Memberships\t0",
        "Total Transactions\t0",
        "Total Subscriptions\t0",
    ]


def test_render_summary_with_memberships():
    text = render_summary({
        "total_members": 12,
        "total_memberships": 1,
        "memberships": [{"id": 3, "title": "Gold", "price": "19.00"}],
    })
    assert "Total Members\t12\n" in text
    assert "\nMembership ID\tTitle\tPrice\n3\tGold\t$19.00\n" in text


def test_render_system_info_skips_empty_sections():
    text = render_system_info({
        "WordPress Core Information": {},
        "Server Information": {"Python Version": "3.12.1"},
    })
    assert text == "Server Information:\n- Python Version: 3.12.1\n"


@pytest.mark.asyncio
async def test_summary_table(make_context):
    out = await memberpress_info_executor({"type": "summary"}, make_context(commerce=FakeCommerce()))
    assert out.kind == ResultKind.TABLE
    assert out.command_type == "summary"
    assert out.value.startswith("Metric\tValue\n")


@pytest.mark.asyncio
async def test_unknown_type_falls_back_to_summary(make_context):
    commerce = FakeCommerce()
    out = await memberpress_info_executor({"type": "coupons"}, make_context(commerce=commerce))
    assert out.command_type == "summary"
    assert commerce.calls == [("summary", {})]


@pytest.mark.asyncio
async def test_members_table_shows_membership_titles(make_context):
    commerce = FakeCommerce(members=[{
        "id": 9, "email": "ann@example.test", "username": "ann", "display_name": "",
        "active_memberships": [{"id": 1, "title": "Gold"}],
    }])
    out = await memberpress_info_executor({"type": "members"}, make_context(commerce=commerce))
    assert out.command_type == "member_list"
    assert "9\tann@example.test\tann\tN/A\tGold" in out.value.splitlines()


@pytest.mark.asyncio
async def test_active_subscriptions_filter(make_context):
    commerce = FakeCommerce()
    await memberpress_info_executor({"type": "active_subscriptions"}, make_context(commerce=commerce))
    assert ("subscriptions", {"status": "active"}) in commerce.calls


@pytest.mark.asyncio
async def test_all_joins_sections(make_context):
    commerce = FakeCommerce()
    out = await memberpress_info_executor({"type": "all"}, make_context(commerce=commerce))
    assert [c[0] for c in commerce.calls] == ["summary", "memberships", "members", "transactions", "subscriptions"]
    assert "Metric\tValue" in out.value
    assert "ID\tTitle\tPrice\tPeriod\tBilling Type" in out.value


@pytest.mark.asyncio
async def test_no_commerce_backend_is_unavailable(make_context):
    out = await memberpress_info_executor({"type": "members"}, make_context())
    assert out.kind == ResultKind.STRUCTURED
    assert out.value["available"] is False
    assert out.value["upsell_url"] == UPSELL_URL


@pytest.mark.asyncio
async def test_backend_unavailable_is_not_an_error(make_context):
    class Missing(FakeCommerce):
        async def get_data_summary(self):
            raise BackendUnavailable()

    out = await memberpress_info_executor({}, make_context(commerce=Missing()))
    assert out.kind == ResultKind.STRUCTURED
    assert out.value["available"] is False


@pytest.mark.asyncio
async def test_include_system_info_appends_sections(make_context):
    class Info:
        async def collect(self):
            return {"Server Information": {"Hostname": "web-1"}}

    out = await memberpress_info_executor(
        {"type": "summary", "include_system_info": True},
        make_context(commerce=FakeCommerce(), system_info=Info()),
    )
    assert "Server Information:\n- Hostname: web-1" in out.value


@pytest.mark.asyncio
async def test_system_info_without_commerce(make_context):
    class Info:
        async def collect(self):
            return {"Server Information": {"Hostname": "web-1"}}

    out = await memberpress_info_executor({"type": "system_info"}, make_context(system_info=Info()))
    assert out.kind == ResultKind.TABLE
    assert out.command_type == "system_info"
    assert "Hostname" in out.value


@pytest.mark.asyncio
async def test_wp_api_forwards_action(make_context):
    site = FakeSite()
    out = await wp_api_executor({"action": "get_users", "limit": 5}, make_context(site=site))
    assert site.actions == [("get_users", {"limit": 5})]
    assert out.kind == ResultKind.STRUCTURED
    assert out.value == {"success": True, "tool": "wp_api", "action": "get_users", "result": {"id": 42, "action": "get_users"}}


@pytest.mark.asyncio
async def test_wp_api_memberpress_action_redirected(make_context):
    site = FakeSite()
    out = await wp_api_executor({"action": "create_membership"}, make_context(site=site))
    assert out.kind == ResultKind.ERROR
    assert out.action == "create_membership"
    assert "memberpress_info" in out.value
    assert site.actions == []


@pytest.mark.asyncio
async def test_wp_api_backend_error_carries_action(make_context):
    class Failing(FakeSite):
        async def execute_action(self, action, params):
            raise RuntimeError("403 Forbidden")

    out = await wp_api_executor({"action": "activate_theme", "theme": "twentyten"}, make_context(site=Failing()))
    assert out.kind == ResultKind.ERROR
    assert out.value == "403 Forbidden"
    assert out.action == "activate_theme"
