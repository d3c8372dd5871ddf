"""
Interfaces of the collaborators the tool pipeline consumes. Implementations live beside this
module; tests pass in small fakes that satisfy the same Protocols.

Commerce and site methods are async (the REST clients use httpx.AsyncClient); the plugin log
store is a synchronous SQLAlchemy store. Either way the pipeline awaits one call at a time.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Union

UPSELL_URL = "https://memberpress.com/plans/"


class BackendError(Exception):
    """A collaborator call failed (HTTP error, bad JSON, rejected request)."""


class BackendUnavailable(BackendError):
    """The collaborator is not configured or not installed on the site. Expected, not a fault."""

    def __init__(self, message: str = "", upsell_url: str = UPSELL_URL):
        super().__init__(message or "MemberPress is not installed or not configured on this site.")
        self.upsell_url = upsell_url


# Commerce accessors return formatted text when formatted=True and the backend supports it,
# otherwise a list of records.
CommerceResult = Union[str, List[Dict[str, Any]]]


class CommerceBackend(Protocol):
    async def get_members(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_memberships(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_transactions(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_subscriptions(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_best_selling(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_new_members_this_month(self, filters: Dict[str, Any], formatted: bool = False) -> CommerceResult: ...

    async def get_data_summary(self) -> Dict[str, Any]: ...


class SiteBackend(Protocol):
    async def execute_action(self, action: str, params: Dict[str, Any]) -> Any: ...

    async def create_post(self, title: str, content: str, status: str = "draft", post_type: str = "post") -> Dict[str, Any]: ...

    async def create_user(self, username: str, email: str, role: str = "subscriber") -> Dict[str, Any]: ...

    async def get_users(self, limit: int = 20) -> List[Dict[str, Any]]: ...

    async def get_posts(self, limit: int = 20, post_type: str = "post") -> List[Dict[str, Any]]: ...

    async def get_plugins(self) -> List[Dict[str, Any]]: ...

    async def get_option(self, name: str) -> Any: ...

    async def get_site_info(self) -> Dict[str, Any]: ...


class PluginLogStore(Protocol):
    def get_logs(
        self,
        plugin_name: str = "",
        plugin_slug: str = "",
        action: str = "",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        orderby: str = "date_time",
        order: str = "DESC",
        limit: int = 25,
        offset: int = 0,
    ) -> List[Dict[str, Any]]: ...

    def count_logs(self, **filters: Any) -> int: ...

    def get_activity_summary(self, days: int = 30) -> Dict[str, Any]: ...


class SystemInfoProvider(Protocol):
    async def collect(self) -> Dict[str, Dict[str, Any]]: ...


class Validator(Protocol):
    """validate may be sync or async; returns {success, validated_command, message}."""

    def validate(self, intent: Dict[str, Any], context: Any) -> Any: ...
