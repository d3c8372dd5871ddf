"""
External collaborators of the tool pipeline, at their interface boundary.

- backends.interfaces: Protocols and errors (CommerceBackend, SiteBackend, PluginLogStore, ...).
- backends.memberpress_rest / backends.wordpress_rest: httpx clients for the site's REST APIs.
- backends.plugin_log_store: plugin activity log on SQLAlchemy.
- backends.system_info: environment/version/host diagnostics.
"""

from backends.interfaces import BackendError, BackendUnavailable

__all__ = ["BackendError", "BackendUnavailable"]
