"""
Validation gate: optional pass through an external validator before dispatch.

Requests matching a bypass rule skip the validator. Otherwise the validator is called inside
error isolation. Under the fail_open policy (default) every outcome is accepted: a rejection keeps
the original request and notes the rejection in the message. Under fail_closed a rejection is
returned as not accepted; validator exceptions still degrade to accept.

RuleBasedValidator is the default validator: it checks plugin activate/deactivate targets against
the site's plugin list and corrects the plugin path when it can.
"""

import inspect
import re
import shlex
from typing import Any, Dict, List, Optional

from loguru import logger

from base.base import CanonicalRequest, ValidationOutcome

# Actions never sent to the validator (content CRUD the assistant does constantly).
BYPASS_ACTIONS = ("create_post", "update_post", "delete_post", "get_post", "create_page")
# Read-only command prefixes never sent to the validator.
BYPASS_COMMAND_PREFIXES = ("wp post list",)
BYPASS_TOP_LEVEL_PREFIXES = ("wp theme list", "wp block list", "wp pattern list", "wp user list")
BYPASS_TOOL_NAMES = ("memberpress_info",)

CONTINUE_SUFFIX = " (continuing with original command)"


def bypass_reason(request: CanonicalRequest) -> Optional[str]:
    """Return the bypass category that exempts request from validation, or None."""
    source = request.source or {}
    params = request.parameters or {}
    if request.name in BYPASS_TOOL_NAMES:
        return "tool_name"
    if source.get("tool") in BYPASS_TOOL_NAMES:
        return "legacy_tool_field"
    if params.get("action") in BYPASS_ACTIONS or source.get("action") in BYPASS_ACTIONS:
        return "action"
    for command in (params.get("command"), source.get("command")):
        if isinstance(command, str) and command.strip().startswith(BYPASS_COMMAND_PREFIXES):
            return "command_prefix"
    for command in (source.get("command"), params.get("command")):
        if isinstance(command, str) and command.strip().startswith(BYPASS_TOP_LEVEL_PREFIXES):
            return "safe_command"
    return None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ValidationGate:
    def __init__(self, validator: Any = None, policy: str = "fail_open", enabled: bool = True):
        self.validator = validator
        self.policy = policy
        self.enabled = enabled

    async def validate(self, request: CanonicalRequest, context: Any = None, original_message: str = "") -> ValidationOutcome:
        reason = bypass_reason(request)
        if reason:
            logger.debug("Validation bypassed for {} ({})", request.name, reason)
            return ValidationOutcome(True, request, f"Validation bypassed ({reason})", bypassed=True)
        if not self.enabled or self.validator is None:
            return ValidationOutcome(True, request, "Validation skipped")

        intent = {
            "command_type": "tool_call",
            "command_data": request.to_dict(),
            "original_message": original_message or "",
        }
        try:
            result = await _maybe_await(self.validator.validate(intent, context))
        except Exception as e:
            logger.warning("Validator raised for {}: {}; continuing with original command", request.name, e)
            return ValidationOutcome(True, request, f"Command validation bypassed due to error: {e}")

        if not isinstance(result, dict):
            logger.warning("Validator returned {} for {}; continuing with original command", type(result).__name__, request.name)
            return ValidationOutcome(True, request, "Validator returned no result" + CONTINUE_SUFFIX)

        message = str(result.get("message") or "")
        if result.get("success"):
            validated = _to_canonical(result.get("validated_command"), request)
            logger.debug("Validation passed for {}: {}", request.name, message)
            return ValidationOutcome(True, validated, message)

        if self.policy == "fail_closed":
            logger.warning("Validation rejected {} (fail_closed): {}", request.name, message)
            return ValidationOutcome(False, request, message or "Command rejected by validator")
        logger.warning("Validation failed for {}, allowing operation to proceed: {}", request.name, message)
        return ValidationOutcome(True, request, message + CONTINUE_SUFFIX)


def _to_canonical(command: Any, original: CanonicalRequest) -> CanonicalRequest:
    if not isinstance(command, dict):
        return original
    params = command.get("parameters")
    if not isinstance(params, dict):
        return original
    name = command.get("name") or original.name
    return CanonicalRequest(name=name, parameters=dict(params), source=original.source)


def find_plugin_path(slug: str, plugins: List[Dict[str, Any]]) -> Optional[str]:
    """
    Resolve a loose plugin reference (path, folder, name, "memberpress gifting") against plugin
    records {path, name}. Returns the real path or None.
    """
    slug = (slug or "").strip().strip("\"'")
    if not slug or not plugins:
        return None
    by_path = {p.get("path", ""): p for p in plugins if p.get("path")}
    if slug in by_path:
        return slug
    lower = slug.lower()

    if "memberpress" in lower:
        addon = ""
        if "memberpress-" in lower:
            addon = re.sub(r"memberpress-|\s+(plugin|add-on|addon)$", "", lower).strip()
        for path, data in by_path.items():
            name = (data.get("name") or "").lower()
            if addon and (path.startswith(f"memberpress-{addon}/") or f"memberpress {addon}" in name):
                return path
        if addon:
            for path, data in by_path.items():
                if path.startswith("memberpress-") and (addon in path.lower() or addon in (data.get("name") or "").lower()):
                    return path

    if "/" in slug:
        folder = slug.split("/", 1)[0]
        for path in by_path:
            if path.startswith(folder + "/"):
                return path

    for path, data in by_path.items():
        if (data.get("name") or "").lower() == lower:
            return path
        if "/" in path and path.split("/", 1)[0].lower() == lower:
            return path

    words = [w for w in re.split(r"[\s-]+", lower) if w]
    if len(words) > 1:
        scores = {}
        for path, data in by_path.items():
            haystack = path.lower() + " " + (data.get("name") or "").lower()
            score = sum(1 for w in words if w in haystack)
            if score:
                scores[path] = score
        if scores:
            return max(scores, key=scores.get)

    for path, data in by_path.items():
        if lower in (data.get("name") or "").lower() or lower in path.lower():
            return path
    return None


_PLUGIN_CMD_RE = re.compile(r"^wp\s+plugin\s+(activate|deactivate)\s+(.+)$")


class RuleBasedValidator:
    """Checks plugin activation targets against the site's plugin list. Permissive when the list is unavailable."""

    def __init__(self, site: Any = None):
        self.site = site

    async def _plugins(self) -> Optional[List[Dict[str, Any]]]:
        if self.site is None:
            return None
        try:
            return await self.site.get_plugins()
        except Exception as e:
            logger.debug("RuleBasedValidator: plugin list unavailable: {}", e)
            return None

    async def validate(self, intent: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        command = intent.get("command_data") or {}
        result = {"success": True, "validated_command": command, "message": "Tool call validated successfully"}
        name = command.get("name")
        params = dict(command.get("parameters") or {})
        if not name:
            return {"success": False, "validated_command": command, "message": "Missing required parameter: name"}

        if name == "wp_api" and params.get("action") in ("activate_plugin", "deactivate_plugin"):
            plugin = params.get("plugin")
            if not plugin:
                return {"success": False, "validated_command": command, "message": "Missing required parameter: plugin"}
            plugins = await self._plugins()
            if plugins is None:
                result["message"] = "Plugin validation bypassed - plugin list unavailable"
                return result
            corrected = find_plugin_path(plugin, plugins)
            if corrected is None:
                return {"success": False, "validated_command": command, "message": _not_found_message(plugin, plugins)}
            if corrected != plugin:
                params["plugin"] = corrected
                result["validated_command"] = {"name": name, "parameters": params}
                result["message"] = f"Plugin path corrected from '{plugin}' to '{corrected}'"
            return result

        if name == "wpcli":
            m = _PLUGIN_CMD_RE.match((params.get("command") or "").strip())
            if not m:
                return result
            verb, target = m.group(1), m.group(2).strip()
            try:
                target = shlex.split(target)[0]
            except (ValueError, IndexError):
                pass
            plugins = await self._plugins()
            if plugins is None:
                result["message"] = "Plugin validation bypassed - plugin list unavailable"
                return result
            corrected = find_plugin_path(target, plugins)
            if corrected is None:
                return {"success": False, "validated_command": command, "message": _not_found_message(target, plugins)}
            if corrected != target:
                params["command"] = f"wp plugin {verb} {corrected}"
                result["validated_command"] = {"name": name, "parameters": params}
                result["message"] = f"Plugin path corrected from '{target}' to '{corrected}'"
        return result


def _not_found_message(plugin: str, plugins: List[Dict[str, Any]]) -> str:
    names = [p.get("name") or p.get("path") for p in plugins[:5]]
    return f"Plugin '{plugin}' not found. Available plugins: " + ", ".join(str(n) for n in names)
