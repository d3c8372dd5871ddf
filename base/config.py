"""
Assistant configuration: config/assistant.yml plus secrets from the environment (.env).

from_yaml raises RuntimeError with a clear message when the file is missing or unparseable.
Individual bad values are logged and replaced by their defaults so the service still starts.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv
from loguru import logger

ROOT_DIR = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "assistant.yml"

DEFAULT_ALLOWED_COMMANDS = [
    "wp plugin",
    "wp post",
    "wp user",
    "wp option",
    "wp core",
    "wp theme",
    "wp site",
    "wp db",
    "wp mepr",
    "php -v",
]

VALIDATION_POLICIES = ("fail_open", "fail_closed")

_TRUE_WORDS = ("true", "yes", "1")
_FALSE_WORDS = ("false", "no", "0")


def _parse_bool(value: Any) -> bool:
    """YAML bool or one of true/false/yes/no/1/0 (any case). Raises ValueError otherwise."""
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(value)


@dataclass
class HostCliConfig:
    enabled: bool = False
    binary: str = "wp"
    wp_path: str = ""


@dataclass
class AssistantConfig:
    tools_enabled: Dict[str, bool] = field(default_factory=dict)
    allowed_commands: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))
    enforce_command_allowlist: bool = False
    validation_policy: str = "fail_open"
    validation_enabled: bool = True
    command_output_max_chars: int = 5000
    host_cli: HostCliConfig = field(default_factory=HostCliConfig)
    command_timeout_seconds: int = 0
    plugin_log_retention_days: int = 90
    plugin_log_database_url: str = "sqlite:///data/plugin_logs.db"
    site_url: str = ""
    wp_user: str = ""
    wp_app_password: str = ""
    memberpress_api_key: str = ""
    http_timeout_seconds: float = 30.0
    auth_enabled: bool = False
    auth_api_key: str = ""
    host: str = "127.0.0.1"
    port: int = 9100
    log_level: str = "INFO"
    log_to_console: bool = True
    log_file: str = ""

    def is_tool_enabled(self, name: str) -> bool:
        return bool(self.tools_enabled.get(name, True))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AssistantConfig":
        """Build config from a mapping. Unknown keys are ignored; values of the wrong type fall back to defaults."""
        cfg = AssistantConfig()
        data = data or {}

        def _get(key: str, kind, default):
            if key not in data or data[key] is None:
                return default
            value = data[key]
            try:
                if kind is bool:
                    return _parse_bool(value)
                return kind(value)
            except (TypeError, ValueError):
                logger.warning("assistant.yml: {} has invalid value {!r}; using default {!r}", key, value, default)
                return default

        raw_tools = data.get("tools_enabled")
        if isinstance(raw_tools, dict):
            cfg.tools_enabled = {str(k): bool(v) for k, v in raw_tools.items()}
        elif raw_tools is not None:
            logger.warning("assistant.yml: tools_enabled must be a mapping, got {}; ignoring", type(raw_tools).__name__)

        raw_allowed = data.get("allowed_commands")
        if isinstance(raw_allowed, list):
            cfg.allowed_commands = [str(c) for c in raw_allowed if c is not None]
        elif raw_allowed is not None:
            logger.warning("assistant.yml: allowed_commands must be a list, got {}; using defaults", type(raw_allowed).__name__)

        cfg.enforce_command_allowlist = _get("enforce_command_allowlist", bool, cfg.enforce_command_allowlist)
        policy = str(data.get("validation_policy") or cfg.validation_policy).strip().lower()
        if policy not in VALIDATION_POLICIES:
            logger.warning("assistant.yml: validation_policy {!r} unknown; using fail_open", policy)
            policy = "fail_open"
        cfg.validation_policy = policy
        cfg.validation_enabled = _get("validation_enabled", bool, cfg.validation_enabled)
        cfg.command_output_max_chars = max(1, _get("command_output_max_chars", int, cfg.command_output_max_chars))
        cfg.command_timeout_seconds = max(0, _get("command_timeout_seconds", int, cfg.command_timeout_seconds))
        cfg.plugin_log_retention_days = max(0, _get("plugin_log_retention_days", int, cfg.plugin_log_retention_days))
        cfg.plugin_log_database_url = _get("plugin_log_database_url", str, cfg.plugin_log_database_url)

        raw_cli = data.get("host_cli")
        if isinstance(raw_cli, dict):
            cli_enabled = raw_cli.get("enabled")
            try:
                cli_enabled = False if cli_enabled is None else _parse_bool(cli_enabled)
            except ValueError:
                logger.warning("assistant.yml: host_cli.enabled has invalid value {!r}; using default False", cli_enabled)
                cli_enabled = False
            cfg.host_cli = HostCliConfig(
                enabled=cli_enabled,
                binary=str(raw_cli.get("binary") or "wp"),
                wp_path=str(raw_cli.get("wp_path") or ""),
            )

        cfg.site_url = (_get("site_url", str, "") or "").rstrip("/")
        cfg.http_timeout_seconds = _get("http_timeout_seconds", float, cfg.http_timeout_seconds)
        cfg.auth_enabled = _get("auth_enabled", bool, cfg.auth_enabled)
        cfg.auth_api_key = _get("auth_api_key", str, "")
        cfg.host = _get("host", str, cfg.host)
        cfg.port = _get("port", int, cfg.port)
        cfg.log_level = str(_get("log_level", str, cfg.log_level)).upper()
        cfg.log_to_console = _get("log_to_console", bool, cfg.log_to_console)
        cfg.log_file = _get("log_file", str, "")
        return cfg

    def apply_env(self, environ: Dict[str, str] = None) -> "AssistantConfig":
        """Overlay secrets and overrides from the environment. Secrets never come from the YAML file."""
        env = os.environ if environ is None else environ
        self.wp_user = (env.get("MPAI_WP_USER") or self.wp_user or "").strip()
        self.wp_app_password = (env.get("MPAI_WP_APP_PASSWORD") or self.wp_app_password or "").strip()
        self.memberpress_api_key = (env.get("MPAI_MEMBERPRESS_API_KEY") or self.memberpress_api_key or "").strip()
        api_key = (env.get("MPAI_API_KEY") or "").strip()
        if api_key:
            self.auth_api_key = api_key
        db_url = (env.get("MPAI_PLUGIN_LOG_DB") or "").strip()
        if db_url:
            self.plugin_log_database_url = db_url
        site_url = (env.get("MPAI_SITE_URL") or "").strip()
        if site_url:
            self.site_url = site_url.rstrip("/")
        return self

    @staticmethod
    def from_yaml(yaml_file: str) -> "AssistantConfig":
        """Load AssistantConfig from assistant.yml. On a missing file or parse error, raises with a clear message."""
        try:
            with open(yaml_file, "r", encoding="utf-8") as file:
                data = yaml.safe_load(file)
        except FileNotFoundError:
            raise RuntimeError(f"config/assistant.yml not found at {yaml_file}. Create it or fix the path.") from None
        except Exception as e:
            raise RuntimeError(f"config/assistant.yml could not be read or parsed: {e}. Fix the file.") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise RuntimeError("config/assistant.yml is invalid (root must be a YAML object). Fix the file before starting.")
        return AssistantConfig.from_dict(data)


def load_config(path: str = None) -> AssistantConfig:
    """Load .env from the project root, then the YAML file (MPAI_CONFIG or config/assistant.yml), then env overrides."""
    load_dotenv(ROOT_DIR / ".env")
    path = path or os.environ.get("MPAI_CONFIG") or str(DEFAULT_CONFIG_PATH)
    cfg = AssistantConfig.from_yaml(path)
    cfg.apply_env()
    logger.debug("Loaded assistant config from {}", path)
    return cfg
