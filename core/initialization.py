"""
Startup wiring: build the ToolContext (registry + collaborators) and the ToolPipeline from config.
Called once by main.py; tests build their own context with fakes.
"""

from typing import Any

from loguru import logger

from backends.interfaces import BackendUnavailable
from backends.memberpress_rest import MemberPressRestBackend
from backends.plugin_log_store import SqlPluginLogStore
from backends.system_info import LocalSystemInfo
from backends.wordpress_rest import WordPressRestBackend
from base.config import AssistantConfig
from base.tools import ToolContext, ToolRegistry
from core.log_helpers import _component_log
from core.pipeline import ToolPipeline
from core.validation import RuleBasedValidator
from tools.builtin import register_builtin_tools
from tools.wpcli import HostCli


def _create_site_backend(config: AssistantConfig) -> Any:
    if not config.site_url:
        _component_log("init", "site_url not set; WordPress API tools will report unavailable")
        return None
    return WordPressRestBackend(
        config.site_url, config.wp_user, config.wp_app_password, timeout=config.http_timeout_seconds
    )


def _create_commerce_backend(config: AssistantConfig) -> Any:
    try:
        return MemberPressRestBackend(config.site_url, config.memberpress_api_key, timeout=config.http_timeout_seconds)
    except BackendUnavailable as e:
        _component_log("init", f"MemberPress backend not configured: {e}")
        return None


def _create_plugin_log_store(config: AssistantConfig) -> Any:
    try:
        store = SqlPluginLogStore(config.plugin_log_database_url)
    except Exception as e:
        logger.warning("Plugin log store unavailable ({}): {}", config.plugin_log_database_url, e)
        return None
    try:
        store.prune(config.plugin_log_retention_days)
    except Exception as e:
        logger.warning("Plugin log prune failed: {}", e)
    return store


def build_context(config: AssistantConfig) -> ToolContext:
    registry = ToolRegistry()
    register_builtin_tools(registry)
    site = _create_site_backend(config)
    commerce = _create_commerce_backend(config)
    host_cli = HostCli(
        enabled=config.host_cli.enabled,
        binary=config.host_cli.binary,
        wp_path=config.host_cli.wp_path,
        timeout=config.command_timeout_seconds,
    )
    context = ToolContext(
        config=config,
        registry=registry,
        commerce=commerce,
        site=site,
        plugin_logs=_create_plugin_log_store(config),
        system_info=LocalSystemInfo(config, site=site, commerce=commerce, host_cli=host_cli),
        validator=RuleBasedValidator(site),
        host_cli=host_cli,
    )
    _component_log("init", f"{len(registry)} tools registered; host CLI available: {host_cli.available()}")
    return context


def build_pipeline(config: AssistantConfig) -> ToolPipeline:
    return ToolPipeline(build_context(config))
