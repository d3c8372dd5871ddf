"""
Built-in tools for the MemberPress assistant (tool layer).

- tools.builtin: register_builtin_tools(registry): wpcli, memberpress_info, wp_api, plugin_logs.
- tools.wpcli: free-text WP-CLI emulation, host CLI and guidance.
- tools.plugin_logs: plugin activity log query.
- Add new tools by creating ToolDefinition and registry.register(tool), or registry.extend([...]).
"""

from tools.builtin import register_builtin_tools

__all__ = ["register_builtin_tools"]
