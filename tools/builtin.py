"""
Built-in tools: wpcli, memberpress_info, wp_api, plugin_logs.

register_builtin_tools(registry) registers all four. Executors take (arguments, context) and return
a ToolOutput; memberpress_info and wp_api turn BackendUnavailable into a successful "unavailable"
result because a site without MemberPress is an expected condition, not a fault.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from backends.interfaces import BackendUnavailable
from base.base import ToolOutput
from base.tools import ToolContext, ToolDefinition, ToolRegistry
from tools.plugin_logs import plugin_logs_executor
from tools.wpcli import wpcli_executor

MEMBERPRESS_INFO_TYPES = [
    "memberships",
    "members",
    "transactions",
    "subscriptions",
    "active_subscriptions",
    "summary",
    "new_members_this_month",
    "system_info",
    "best_selling",
    "all",
]

MEMBERPRESS_COMMAND_TYPES = {
    "summary": "summary",
    "members": "member_list",
    "memberships": "membership_list",
    "transactions": "transaction_list",
    "subscriptions": "subscription_list",
    "active_subscriptions": "active_subscription_list",
    "best_selling": "best_selling_list",
    "new_members_this_month": "new_members_this_month",
    "system_info": "system_info",
    "all": "all",
}

WP_API_ACTIONS = [
    "create_post",
    "update_post",
    "get_post",
    "get_posts",
    "create_page",
    "create_user",
    "get_users",
    "activate_plugin",
    "deactivate_plugin",
    "get_plugins",
    "get_themes",
    "activate_theme",
]

PLUGIN_LOG_ACTIONS = ["installed", "updated", "activated", "deactivated", "deleted", ""]

SYSTEM_INFO_SECTIONS = (
    "WordPress Core Information",
    "Server Information",
    "MemberPress Information",
    "MemberPress AI Assistant Information",
)


def unavailable_output(error: BackendUnavailable, command_type: Optional[str] = None) -> ToolOutput:
    return ToolOutput.structured(
        {"available": False, "message": str(error), "upsell_url": error.upsell_url},
        command_type=command_type,
    )


# --- table rendering ----------------------------------------------------------------------


def _cell(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    return str(value).replace("\t", " ").replace("\n", " ")


def _table(header: List[str], rows: List[List[Any]]) -> str:
    lines = ["\t".join(header)]
    lines.extend("\t".join(_cell(v) for v in row) for row in rows)
    return "\n".join(lines) + "\n"


def render_summary(summary: Dict[str, Any]) -> str:
    summary = summary or {}

    def _count(key: str) -> Any:
        value = summary.get(key)
        return "0" if value in (None, "") else value

    text = (
        "Metric\tValue\n"
        f"Total Members\t{_count('total_members')}\n"
        f"Total Memberships\t{_count('total_memberships')}\n"
        f"Total Transactions\t{_count('transaction_count')}\n"
        f"Total Subscriptions\t{_count('subscription_count')}\n"
    )
    memberships = summary.get("memberships") or []
    if memberships:
        text += "\nMembership ID\tTitle\tPrice\n"
        for m in memberships:
            text += f"{_cell(m.get('id'))}\t{_cell(m.get('title'))}\t${m.get('price', 0)}\n"
    return text


def render_members(members: List[Dict[str, Any]]) -> str:
    rows = []
    for m in members:
        active = m.get("active_memberships") or []
        titles = ", ".join(str(a.get("title") if isinstance(a, dict) else a) for a in active) or "None"
        rows.append([m.get("id"), m.get("email"), m.get("username"), m.get("display_name"), titles])
    return _table(["ID", "Email", "Username", "Display Name", "Memberships"], rows)


def render_memberships(memberships: List[Dict[str, Any]]) -> str:
    rows = [[m.get("id"), m.get("title"), m.get("price"), m.get("period"), m.get("period_type")] for m in memberships]
    return _table(["ID", "Title", "Price", "Period", "Billing Type"], rows)


def render_transactions(transactions: List[Dict[str, Any]]) -> str:
    rows = [
        [t.get("id"), t.get("member"), t.get("membership"), t.get("amount"), t.get("status"), t.get("created_at")]
        for t in transactions
    ]
    return _table(["ID", "Member", "Membership", "Amount", "Status", "Date"], rows)


def render_subscriptions(subscriptions: List[Dict[str, Any]]) -> str:
    rows = [
        [s.get("id"), s.get("member"), s.get("membership"), s.get("price"), s.get("status"), s.get("created_at")]
        for s in subscriptions
    ]
    return _table(["ID", "Member", "Membership", "Price", "Status", "Created"], rows)


def render_best_selling(items: List[Dict[str, Any]]) -> str:
    rows = [[i + 1, item.get("membership") or item.get("title"), item.get("sales")] for i, item in enumerate(items)]
    return _table(["Rank", "Membership", "Sales"], rows)


def render_new_members(members: List[Dict[str, Any]]) -> str:
    rows = [[m.get("id"), m.get("email"), m.get("username"), m.get("registered")] for m in members]
    return _table(["ID", "Email", "Username", "Registered"], rows)


def render_system_info(sections: Dict[str, Dict[str, Any]]) -> str:
    """Labeled sections in fixed order; empty sections are skipped."""
    parts = []
    for title in SYSTEM_INFO_SECTIONS:
        values = (sections or {}).get(title) or {}
        if not values:
            continue
        body = "".join(f"- {label}: {value}\n" for label, value in values.items())
        parts.append(f"{title}:\n{body}")
    return "\n".join(parts)


# --- memberpress_info ---------------------------------------------------------------------


async def _system_info_text(context: ToolContext) -> str:
    provider = context.system_info
    if provider is None:
        return ""
    try:
        return render_system_info(await provider.collect())
    except Exception as e:
        logger.warning("memberpress_info: system info failed: {}", e)
        return ""


async def _listing(context: ToolContext, info_type: str) -> str:
    commerce = context.commerce
    if info_type == "members":
        data = await commerce.get_members({}, formatted=True)
        return data if isinstance(data, str) else render_members(data)
    if info_type == "memberships":
        data = await commerce.get_memberships({}, formatted=True)
        return data if isinstance(data, str) else render_memberships(data)
    if info_type == "transactions":
        data = await commerce.get_transactions({}, formatted=True)
        return data if isinstance(data, str) else render_transactions(data)
    if info_type in ("subscriptions", "active_subscriptions"):
        filters = {"status": "active"} if info_type == "active_subscriptions" else {}
        data = await commerce.get_subscriptions(filters, formatted=True)
        return data if isinstance(data, str) else render_subscriptions(data)
    if info_type == "best_selling":
        data = await commerce.get_best_selling({}, formatted=True)
        return data if isinstance(data, str) else render_best_selling(data)
    if info_type == "new_members_this_month":
        data = await commerce.get_new_members_this_month({}, formatted=True)
        return data if isinstance(data, str) else render_new_members(data)
    return render_summary(await commerce.get_data_summary())


async def memberpress_info_executor(arguments: Dict[str, Any], context: ToolContext) -> ToolOutput:
    """Aggregated MemberPress data as a tab-separated table, optionally followed by system info."""
    info_type = arguments.get("type") or "summary"
    if info_type not in MEMBERPRESS_INFO_TYPES:
        logger.warning("memberpress_info: unknown type {!r}; using summary", info_type)
        info_type = "summary"
    command_type = MEMBERPRESS_COMMAND_TYPES[info_type]
    include_system = bool(arguments.get("include_system_info")) or info_type == "system_info"

    if info_type == "system_info":
        return ToolOutput.table(await _system_info_text(context), command_type=command_type)

    if context.commerce is None:
        return unavailable_output(BackendUnavailable(), command_type)
    try:
        if info_type == "all":
            sections = []
            for part in ("summary", "memberships", "members", "transactions", "subscriptions"):
                sections.append(await _listing(context, part))
            text = "\n".join(sections)
        else:
            text = await _listing(context, info_type)
    except BackendUnavailable as e:
        return unavailable_output(e, command_type)

    if include_system:
        system_text = await _system_info_text(context)
        if system_text:
            text = text + "\n" + system_text
    return ToolOutput.table(text, command_type=command_type)


# --- wp_api -------------------------------------------------------------------------------


def is_memberpress_action(action: str) -> bool:
    action = action or ""
    return (
        action in ("get_memberships", "create_membership", "get_transactions", "get_subscriptions")
        or "membership" in action
        or "coupon" in action
        or action.startswith("mepr_")
    )


def memberpress_action_guidance(action: str) -> str:
    if "transaction" in action:
        info_type = "transactions"
    elif "subscription" in action:
        info_type = "subscriptions"
    else:
        info_type = "memberships"
    return (
        f"The wp_api action '{action}' is not available for MemberPress data. "
        f'Use memberpress_info instead, e.g. {{"name": "memberpress_info", "parameters": {{"type": "{info_type}"}}}}'
    )


async def wp_api_executor(arguments: Dict[str, Any], context: ToolContext) -> ToolOutput:
    """Forward the bound parameters to the site backend. Structured results are wrapped, strings pass through."""
    action = arguments.get("action") or ""
    if is_memberpress_action(action):
        return ToolOutput.error(memberpress_action_guidance(action), action=action)
    if context.site is None:
        return unavailable_output(BackendUnavailable("The WordPress site API is not configured (site_url is empty)."))
    params = {k: v for k, v in arguments.items() if k != "action"}
    try:
        result = await context.site.execute_action(action, params)
    except BackendUnavailable as e:
        return unavailable_output(e)
    except Exception as e:
        logger.warning("wp_api {} failed: {}", action, e)
        return ToolOutput.error(str(e) or type(e).__name__, action=action)
    if isinstance(result, str):
        return ToolOutput.text(result)
    return ToolOutput.structured({"success": True, "tool": "wp_api", "action": action, "result": result})


# --- registration -------------------------------------------------------------------------


def register_builtin_tools(registry: ToolRegistry) -> None:
    """Register all built-in tools. Call once at startup (core.initialization.build_context)."""
    registry.register(
        ToolDefinition(
            name="wpcli",
            description="Run a WP-CLI command (e.g. 'wp user list', 'wp post list', 'wp plugin list', 'wp option get blogname'). Common commands are answered through the site API when WP-CLI is not available.",
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "The full WP-CLI command, starting with 'wp'."},
                },
                "required": ["command"],
            },
            execute_async=wpcli_executor,
        )
    )
    registry.register(
        ToolDefinition(
            name="memberpress_info",
            description="Get MemberPress data (members, memberships, transactions, subscriptions, best sellers, summary) as a table, optionally with system information.",
            parameters={
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": MEMBERPRESS_INFO_TYPES,
                        "description": "Which data to return (default summary).",
                        "default": "summary",
                    },
                    "include_system_info": {
                        "type": "boolean",
                        "description": "Append WordPress/server/MemberPress system information.",
                        "default": False,
                    },
                },
                "required": [],
            },
            execute_async=memberpress_info_executor,
        )
    )
    registry.register(
        ToolDefinition(
            name="wp_api",
            description="Call the WordPress API: create/update/get posts and pages, create/list users, list/activate/deactivate plugins, list/activate themes. For MemberPress data use memberpress_info.",
            parameters={
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": WP_API_ACTIONS, "description": "The action to perform."},
                    "plugin": {"type": "string", "description": "Plugin path or name for activate_plugin/deactivate_plugin."},
                    "title": {"type": "string", "description": "Post or page title."},
                    "content": {"type": "string", "description": "Post or page content."},
                    "status": {"type": "string", "description": "Post status (default draft)."},
                    "post_id": {"type": "integer", "description": "Post id for get_post/update_post."},
                    "username": {"type": "string", "description": "Login for create_user."},
                    "email": {"type": "string", "description": "Email for create_user."},
                    "role": {"type": "string", "description": "Role for create_user (default subscriber)."},
                    "limit": {"type": "integer", "description": "Max items for list actions."},
                },
                "required": ["action"],
            },
            execute_async=wp_api_executor,
            additional_parameters=True,
        )
    )
    registry.register(
        ToolDefinition(
            name="plugin_logs",
            description="Plugin activity history: installs, updates, activations, deactivations and deletions, with counts and most active plugins.",
            parameters={
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": PLUGIN_LOG_ACTIONS, "description": "Only this action type; empty for all."},
                    "plugin_name": {"type": "string", "description": "Filter by plugin name (partial match)."},
                    "days": {"type": "integer", "description": "Days to look back; 0 for all time (default 30).", "default": 30},
                    "limit": {"type": "integer", "description": "Max log entries (default 25).", "default": 25},
                    "summary_only": {"type": "boolean", "description": "Return only the summary counts.", "default": False},
                },
                "required": [],
            },
            execute_async=plugin_logs_executor,
        )
    )
