"""
plugin_logs tool: query the plugin activity log.

A day count of 0 means no lower date bound (the summary then covers the last 365 days).
With entries the result is Markdown text; summary_only and empty queries return structured data.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from base.base import ToolOutput
from base.tools import ToolContext

LOG_ACTIONS = ("installed", "updated", "activated", "deactivated", "deleted")

_TIME_UNITS = (
    (365 * 86400, "year"),
    (30 * 86400, "month"),
    (7 * 86400, "week"),
    (86400, "day"),
    (3600, "hour"),
    (60, "minute"),
)


def time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    """Relative time: "1 day ago", "3 weeks ago"; under a minute (or in the future) "just now"."""
    now = now or datetime.now()
    diff = int((now - when).total_seconds())
    if diff < 60:
        return "just now"
    for seconds, label in _TIME_UNITS:
        count = diff // seconds
        if count > 0:
            return f"1 {label} ago" if count == 1 else f"{count} {label}s ago"
    return "just now"


def window_start(days: int, now: Optional[datetime] = None) -> Optional[datetime]:
    if not days or days <= 0:
        return None
    return (now or datetime.now()) - timedelta(days=days)


def count_actions(summary: Dict[str, Any]) -> Dict[str, int]:
    counts = {"total": 0}
    counts.update({a: 0 for a in LOG_ACTIONS})
    for item in (summary or {}).get("action_counts") or []:
        action = item.get("action")
        if not action:
            continue
        n = int(item.get("count") or 0)
        counts[action] = n
        counts["total"] += n
    return counts


def format_logs_markdown(result: Dict[str, Any]) -> str:
    summary = result["summary"]
    lines = [
        "## Plugin Activity Logs",
        "",
        f"Showing plugin activity for the {result['time_period']}",
        "",
        "### Summary",
        f"- Total activities: {summary['total']}",
        f"- Installations: {summary['installed']}",
        f"- Updates: {summary['updated']}",
        f"- Activations: {summary['activated']}",
        f"- Deactivations: {summary['deactivated']}",
        f"- Deletions: {summary['deleted']}",
        "",
        "### Recent Activity",
    ]
    for log in result["logs"]:
        user = f" by user {log['user_login']}" if log.get("user_login") else ""
        lines.append(
            f"- {str(log.get('action') or '').capitalize()}: {log.get('plugin_name')} "
            f"v{log.get('plugin_version') or ''} ({log.get('time_ago', '')}){user}"
        )
    return "\n".join(lines) + "\n"


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def query_plugin_logs(store: Any, arguments: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Run the log query against store and return the structured result (logs annotated with time_ago)."""
    now = now or datetime.now()
    action = arguments.get("action") or ""
    plugin_name = arguments.get("plugin_name") or ""
    days = int(arguments.get("days") if arguments.get("days") is not None else 30)
    limit = int(arguments.get("limit") or 25)
    date_from = window_start(days, now)
    time_period = f"past {days} days" if days > 0 else "all time"

    summary = store.get_activity_summary(days if days > 0 else 365)
    counts = count_actions(summary)

    if arguments.get("summary_only"):
        return {
            "success": True,
            "summary": counts,
            "time_period": time_period,
            "most_active_plugins": summary.get("most_active_plugins") or [],
            "logs_exist": counts["total"] > 0,
            "message": f"Found {counts['total']} plugin log entries" if counts["total"] > 0
            else "No plugin logs found for the specified criteria",
        }

    logs: List[Dict[str, Any]] = store.get_logs(
        plugin_name=plugin_name, action=action, date_from=date_from,
        orderby="date_time", order="DESC", limit=limit,
    )
    total = store.count_logs(plugin_name=plugin_name, action=action, date_from=date_from)
    for log in logs:
        when = _as_datetime(log.get("date_time"))
        if when is not None:
            log["readable_date"] = when.strftime("%B %d, %Y, %I:%M %p")
            log["time_ago"] = time_ago(when, now)
    return {
        "success": True,
        "summary": counts,
        "time_period": time_period,
        "total_records": total,
        "returned_records": len(logs),
        "has_more": total > len(logs),
        "logs": logs,
        "query": {"action": action, "plugin_name": plugin_name, "days": days, "limit": limit},
    }


async def plugin_logs_executor(arguments: Dict[str, Any], context: ToolContext) -> ToolOutput:
    """Plugin activity summary and recent entries."""
    if context.plugin_logs is None:
        return ToolOutput.error("Plugin logger is not available")
    result = query_plugin_logs(context.plugin_logs, arguments)
    if result.get("logs"):
        return ToolOutput.text(format_logs_markdown(result))
    return ToolOutput.structured(result)
