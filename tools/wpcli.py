"""
wpcli tool: free-text WP-CLI commands.

Order of attempts:
1. Emulations of common commands (create post/page/user, list users/posts/plugins, read an option,
   list memberships) against the site and commerce backends. Argument extraction is done by the
   parse_* functions, which return None when the command does not match.
2. The host WP-CLI binary, when enabled in config and found on PATH. Output is truncated to
   command_output_max_chars plus TRUNCATION_MARKER.
3. A guidance message explaining which API tool call achieves the same thing.
"""

import asyncio
import json
import re
import shlex
import shutil
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger

from base.base import ToolOutput
from base.tools import ToolContext

TRUNCATION_MARKER = "...\n\n[Output truncated due to size]"

TABLE_COMMAND_PREFIXES = (
    "wp user list",
    "wp post list",
    "wp plugin list",
    "wp site list",
    "wp comment list",
    "wp term list",
    "wp menu list",
    "wp menu item list",
    "wp theme list",
)

MEMBERPRESS_TYPES = (
    "memberships, members, transactions, subscriptions, active_subscriptions, summary, "
    "new_members_this_month, system_info, best_selling, all"
)

_PAGE_CREATE_RE = re.compile(r"wp post create\s+--post_type=page\s+--post_title=['\"]?([^'\"]*)['\"]?")
_POST_CREATE_RE = re.compile(r"wp post create\s+--post_title=['\"]?([^'\"]*)['\"]?")
_POST_CONTENT_RE = re.compile(r"--post_content=['\"]?([^'\"]*)['\"]?")
_POST_STATUS_RE = re.compile(r"--post_status=['\"]?([^'\"\s]*)['\"]?")
_USER_CREATE_RE = re.compile(r"wp user create\s+(\S+)\s+(\S+)")
_ROLE_RE = re.compile(r"--role=['\"]?([^'\"\s]+)['\"]?")
_OPTION_GET_RE = re.compile(r"wp option get\s+(\S+)")
_LIMIT_RE = re.compile(r"--(?:number|posts_per_page|limit)=(\d+)")


# --- pure argument parsers ---------------------------------------------------------------


def parse_page_create(command: str) -> Optional[Dict[str, Any]]:
    m = _PAGE_CREATE_RE.search(command or "")
    if not m:
        return None
    content = _POST_CONTENT_RE.search(command)
    status = _POST_STATUS_RE.search(command)
    return {
        "title": m.group(1),
        "content": content.group(1) if content else "",
        "status": (status.group(1) if status else "") or "draft",
        "post_type": "page",
    }


def parse_post_create(command: str) -> Optional[Dict[str, Any]]:
    m = _POST_CREATE_RE.search(command or "")
    if not m:
        return None
    content = _POST_CONTENT_RE.search(command)
    status = _POST_STATUS_RE.search(command)
    return {
        "title": m.group(1),
        "content": content.group(1) if content else "",
        "status": (status.group(1) if status else "") or "draft",
        "post_type": "page" if "--post_type=page" in command else "post",
    }


def parse_user_create(command: str) -> Optional[Dict[str, str]]:
    m = _USER_CREATE_RE.search(command or "")
    if not m or m.group(1).startswith("--") or m.group(2).startswith("--"):
        return None
    role = _ROLE_RE.search(command)
    return {
        "username": m.group(1).strip("'\""),
        "email": m.group(2).strip("'\""),
        "role": role.group(1) if role else "subscriber",
    }


def parse_option_get(command: str) -> Optional[str]:
    m = _OPTION_GET_RE.search(command or "")
    return m.group(1).strip("'\"") if m else None


def parse_list_limit(command: str, default: int = 20) -> int:
    m = _LIMIT_RE.search(command or "")
    return int(m.group(1)) if m else default


def is_table_command(command: str) -> bool:
    command = (command or "").strip()
    return command.startswith(TABLE_COMMAND_PREFIXES) or "mepr-list" in command


def truncate_output(output: str, max_chars: int = 5000) -> str:
    """Keep the first max_chars characters and append TRUNCATION_MARKER when longer."""
    if output is None:
        return ""
    if len(output) <= max_chars:
        return output
    return output[:max_chars] + TRUNCATION_MARKER


def guidance_message(command: str) -> str:
    """Explain how to get the same result through API tool calls, keyed on keywords in command."""
    command = command or ""
    message = (
        "The AI assistant cannot directly run WP-CLI commands on your server. "
        "However, you can use these API tools instead:\n\n"
    )
    if "wp plugin" in command:
        message += (
            "1. List installed plugins with the WordPress API:\n"
            '   {"tool": "wp_api", "parameters": {"action": "get_plugins"}}\n\n'
            "2. For plugin activity (installs, updates, activations), use plugin_logs:\n"
            '   {"tool": "plugin_logs", "parameters": {"days": 30, "summary_only": true}}\n'
        )
    elif "wp post" in command:
        message += (
            "1. Create or read posts with the WordPress API:\n"
            '   {"tool": "wp_api", "parameters": {"action": "create_post", "title": "Your Title", "content": "Your content here"}}\n\n'
            "2. Available post actions: create_post, update_post, get_post, get_posts, create_page\n"
        )
    elif "wp user" in command:
        message += (
            "1. List or create users with the WordPress API:\n"
            '   {"tool": "wp_api", "parameters": {"action": "get_users", "limit": 10}}\n\n'
            "2. Available user actions: create_user, get_users\n"
        )
    elif "wp mepr" in command or "memberpress" in command.lower():
        message += (
            "1. For MemberPress data, use memberpress_info:\n"
            '   {"tool": "memberpress_info", "parameters": {"type": "memberships"}}\n\n'
            f"2. Available types: {MEMBERPRESS_TYPES}\n"
            "3. Add system information to any type:\n"
            '   {"tool": "memberpress_info", "parameters": {"type": "all", "include_system_info": true}}\n'
        )
    else:
        message += (
            "1. For WordPress operations, use the WordPress API:\n"
            '   {"tool": "wp_api", "parameters": {"action": "action_name", "param1": "value1"}}\n\n'
            "2. For plugin information:\n"
            '   {"tool": "wp_api", "parameters": {"action": "get_plugins"}}\n\n'
            "3. For MemberPress data, use memberpress_info:\n"
            '   {"tool": "memberpress_info", "parameters": {"type": "memberships"}}\n'
            f"   Available types: {MEMBERPRESS_TYPES}\n"
            "4. For system information:\n"
            '   {"tool": "memberpress_info", "parameters": {"type": "system_info"}}\n'
        )
    return message


# --- host CLI -----------------------------------------------------------------------------


class HostCli:
    """Runs WP-CLI on the host. available() is False unless enabled and the binary resolves on PATH."""

    def __init__(self, enabled: bool = False, binary: str = "wp", wp_path: str = "", timeout: int = 0):
        self.enabled = enabled
        self.binary = binary or "wp"
        self.wp_path = wp_path or ""
        self.timeout = timeout or 0

    def available(self) -> bool:
        return bool(self.enabled and shutil.which(self.binary))

    def build_argv(self, command: str) -> List[str]:
        parts = shlex.split(command)
        if parts and parts[0] == "wp":
            parts = [self.binary] + parts[1:]
            if self.wp_path and not any(p.startswith("--path=") for p in parts):
                parts.append(f"--path={self.wp_path}")
        return parts

    async def run(self, command: str) -> str:
        argv = self.build_argv(command)
        if not argv:
            return ""
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        if self.timeout:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        else:
            stdout, stderr = await proc.communicate()
        out = stdout.decode("utf-8", errors="replace").strip()
        err = stderr.decode("utf-8", errors="replace").strip()
        if err:
            out = out + "\nstderr:\n" + err if out else "stderr:\n" + err
        return out


# --- emulations ---------------------------------------------------------------------------


def _rows(header: List[str], rows: List[List[Any]]) -> str:
    lines = ["\t".join(header)]
    for row in rows:
        lines.append("\t".join("" if v is None else str(v) for v in row))
    return "\n".join(lines) + "\n"


def _created_text(kind: str, created: Dict[str, Any], fallback: Dict[str, Any]) -> str:
    return (
        f"{kind} created successfully.\n"
        f"ID: {created.get('id', '')}\n"
        f"Title: {created.get('title') or fallback.get('title', '')}\n"
        f"Status: {created.get('status') or fallback.get('status', '')}\n"
        f"URL: {created.get('link') or created.get('url') or ''}"
    )


async def _emulate_page_create(command: str, context: ToolContext) -> Optional[ToolOutput]:
    args = parse_page_create(command)
    if args is None or context.site is None:
        return None
    created = await context.site.create_post(args["title"], args["content"], args["status"], post_type="page")
    return ToolOutput.text(_created_text("Page", created, args), command=command)


async def _emulate_post_create(command: str, context: ToolContext) -> Optional[ToolOutput]:
    args = parse_post_create(command)
    if args is None or context.site is None:
        return None
    post_type = args["post_type"]
    created = await context.site.create_post(args["title"], args["content"], args["status"], post_type=post_type)
    kind = "Page" if post_type == "page" else "Post"
    return ToolOutput.text(_created_text(kind, created, args), command=command)


async def _emulate_user_create(command: str, context: ToolContext) -> Optional[ToolOutput]:
    args = parse_user_create(command)
    if args is None or context.site is None:
        return None
    created = await context.site.create_user(args["username"], args["email"], args["role"])
    return ToolOutput.text(
        f"User created successfully.\nID: {created.get('id', '')}\nUsername: {args['username']}\n"
        f"Email: {args['email']}\nRole: {args['role']}",
        command=command,
    )


async def _emulate_user_list(command: str, context: ToolContext) -> Optional[ToolOutput]:
    if not command.startswith("wp user list") or context.site is None:
        return None
    users = await context.site.get_users(limit=parse_list_limit(command))
    rows = [
        [u.get("id"), u.get("username") or u.get("slug"), u.get("name"), u.get("email", ""), ", ".join(u.get("roles") or [])]
        for u in users
    ]
    return ToolOutput.table(_rows(["ID", "User Login", "Display Name", "Email", "Roles"], rows), command=command)


async def _emulate_post_list(command: str, context: ToolContext) -> Optional[ToolOutput]:
    if not command.startswith("wp post list") or context.site is None:
        return None
    post_type = "page" if "--post_type=page" in command else "post"
    posts = await context.site.get_posts(limit=parse_list_limit(command), post_type=post_type)
    rows = [[p.get("id"), p.get("title"), p.get("date"), p.get("status")] for p in posts]
    return ToolOutput.table(_rows(["ID", "Post Title", "Post Date", "Status"], rows), command=command)


def _last_activity_by_plugin(context: ToolContext) -> Dict[str, str]:
    if context.plugin_logs is None:
        return {}
    try:
        summary = context.plugin_logs.get_activity_summary(30)
    except Exception as e:
        logger.debug("wpcli: plugin activity unavailable: {}", e)
        return {}
    activity = {}
    for item in summary.get("most_active_plugins") or []:
        last_date = str(item.get("last_date") or "")[:10]
        activity[item.get("plugin_name")] = f"{item.get('last_action', '')} {last_date}".strip()
    return activity


async def _emulate_plugin_list(command: str, context: ToolContext) -> Optional[ToolOutput]:
    if not re.match(r"^wp plugin (list|status|logs)\b", command) or context.site is None:
        return None
    plugins = await context.site.get_plugins()
    activity = _last_activity_by_plugin(context)
    rows = [
        [p.get("name"), "active" if p.get("active") else "inactive", p.get("version", ""), activity.get(p.get("name"), "N/A")]
        for p in plugins
    ]
    return ToolOutput.table(_rows(["Name", "Status", "Version", "Last Activity"], rows), command=command)


async def _emulate_option_get(command: str, context: ToolContext) -> Optional[ToolOutput]:
    name = parse_option_get(command)
    if name is None or context.site is None:
        return None
    value = await context.site.get_option(name)
    if value is None:
        return ToolOutput.text(f"Option '{name}' not found.", command=command)
    if isinstance(value, (dict, list)):
        return ToolOutput.text(json.dumps(value, indent=2), command=command)
    return ToolOutput.text(str(value), command=command)


async def _emulate_membership_list(command: str, context: ToolContext) -> Optional[ToolOutput]:
    if not command.startswith("wp mepr-membership") or context.commerce is None:
        return None
    from tools.builtin import render_memberships

    result = await context.commerce.get_memberships({}, formatted=True)
    text = result if isinstance(result, str) else render_memberships(result)
    return ToolOutput.table(text, command=command, command_type="membership_list")


Emulation = Callable[[str, ToolContext], Awaitable[Optional[ToolOutput]]]

EMULATIONS: Tuple[Emulation, ...] = (
    _emulate_page_create,
    _emulate_post_create,
    _emulate_user_create,
    _emulate_user_list,
    _emulate_post_list,
    _emulate_plugin_list,
    _emulate_option_get,
    _emulate_membership_list,
)


async def wpcli_executor(arguments: Dict[str, Any], context: ToolContext) -> ToolOutput:
    """Run a free-text WP-CLI command: emulation, then host CLI, then guidance."""
    command = (arguments.get("command") or "").strip()
    if not command:
        return ToolOutput.error("Missing required parameter: command")

    for emulate in EMULATIONS:
        try:
            output = await emulate(command, context)
        except Exception as e:
            logger.warning("wpcli emulation {} failed for {!r}: {}", emulate.__name__, command, e)
            continue
        if output is not None:
            logger.debug("wpcli: {} handled {!r}", emulate.__name__, command)
            return output

    host = context.host_cli
    if host is not None and host.available():
        logger.debug("wpcli: running on host CLI: {}", command)
        try:
            raw = await host.run(command)
        except asyncio.TimeoutError:
            return ToolOutput.error(f"Command timed out after {host.timeout}s")
        except FileNotFoundError:
            return ToolOutput.error(f"Command not found: {host.binary}")
        max_chars = getattr(context.config, "command_output_max_chars", 5000)
        output = truncate_output(raw, max_chars)
        if is_table_command(command):
            return ToolOutput.table(output, command=command)
        return ToolOutput.text(output, command=command)

    logger.debug("wpcli: no emulation or host CLI for {!r}; returning guidance", command)
    return ToolOutput.text(guidance_message(command), command=command)
