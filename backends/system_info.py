"""
System information for memberpress_info(type=system_info): host, interpreter and site details as
labeled sections. A section whose source fails is left empty (and skipped when rendered).
"""

import platform
import socket
import sys
from typing import Any, Dict

from loguru import logger

ASSISTANT_VERSION = "0.1.0"


class LocalSystemInfo:
    def __init__(self, config: Any = None, site: Any = None, commerce: Any = None, host_cli: Any = None):
        self.config = config
        self.site = site
        self.commerce = commerce
        self.host_cli = host_cli

    def server_info(self) -> Dict[str, Any]:
        return {
            "Python Version": sys.version.split()[0],
            "Operating System": platform.system(),
            "Platform": platform.platform(),
            "Machine": platform.machine(),
            "Hostname": socket.gethostname(),
        }

    def assistant_info(self) -> Dict[str, Any]:
        config = self.config
        enabled = getattr(config, "tools_enabled", {}) or {}
        disabled = sorted(name for name, on in enabled.items() if not on)
        return {
            "Version": ASSISTANT_VERSION,
            "Validation Policy": getattr(config, "validation_policy", "fail_open"),
            "Command Allow-List Enforced": "Yes" if getattr(config, "enforce_command_allowlist", False) else "No",
            "Host WP-CLI Available": "Yes" if self.host_cli is not None and self.host_cli.available() else "No",
            "Disabled Tools": ", ".join(disabled) or "None",
        }

    async def wordpress_info(self) -> Dict[str, Any]:
        if self.site is None:
            return {}
        try:
            return await self.site.get_site_info()
        except Exception as e:
            logger.debug("System info: WordPress section unavailable: {}", e)
            return {}

    def memberpress_info(self) -> Dict[str, Any]:
        if self.commerce is None:
            return {"Status": "Not configured"}
        return {
            "Status": "Configured",
            "REST API": getattr(self.commerce, "base_url", ""),
        }

    async def collect(self) -> Dict[str, Dict[str, Any]]:
        return {
            "WordPress Core Information": await self.wordpress_info(),
            "Server Information": self.server_info(),
            "MemberPress Information": self.memberpress_info(),
            "MemberPress AI Assistant Information": self.assistant_info(),
        }
