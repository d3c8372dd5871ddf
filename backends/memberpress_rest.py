"""
Commerce backend over the MemberPress developer REST API (wp-json/mp/v1), authenticated with the
MemberPress API key in the Authorization header.

Records are flattened to the keys the memberpress_info tables render (see tools.builtin). This client
never returns pre-formatted text; formatted=True is accepted and ignored.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from backends.interfaces import BackendError, BackendUnavailable


def _label(value: Any, *keys: str) -> Any:
    """Nested objects (member, membership) come back as dicts; show their first non-empty key."""
    if isinstance(value, dict):
        for key in keys:
            if value.get(key):
                return value[key]
        return value.get("id")
    return value


def _member_record(m: Dict[str, Any]) -> Dict[str, Any]:
    display = m.get("display_name") or " ".join(
        p for p in (m.get("first_name") or "", m.get("last_name") or "") if p
    )
    return {
        "id": m.get("id"),
        "email": m.get("email", ""),
        "username": m.get("username", ""),
        "display_name": display,
        "active_memberships": [
            {"id": a.get("id"), "title": a.get("title")} if isinstance(a, dict) else a
            for a in (m.get("active_memberships") or [])
        ],
        "registered": m.get("registered_at") or m.get("registered") or "",
    }


def _membership_record(m: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": m.get("id"),
        "title": m.get("title", ""),
        "price": m.get("price", ""),
        "period": m.get("period", ""),
        "period_type": m.get("period_type", ""),
    }


def _transaction_record(t: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": t.get("id"),
        "member": _label(t.get("member"), "email", "username"),
        "membership": _label(t.get("membership"), "title"),
        "amount": t.get("total") or t.get("amount", ""),
        "status": t.get("status", ""),
        "created_at": t.get("created_at", ""),
    }


def _subscription_record(s: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": s.get("id"),
        "member": _label(s.get("member"), "email", "username"),
        "membership": _label(s.get("membership"), "title"),
        "price": s.get("price") or s.get("total", ""),
        "status": s.get("status", ""),
        "created_at": s.get("created_at", ""),
    }


class MemberPressRestBackend:
    def __init__(
        self,
        site_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        per_page: int = 100,
    ):
        if not site_url:
            raise BackendUnavailable("MemberPress is not configured (site_url is empty).")
        if not api_key:
            raise BackendUnavailable("MemberPress API key is not configured.")
        self.base_url = site_url.rstrip("/") + "/wp-json/mp/v1"
        self.per_page = per_page
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, endpoint: str, params: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        query = {"per_page": self.per_page}
        query.update({k: v for k, v in (params or {}).items() if v not in (None, "")})
        try:
            resp = await self._client.get("/" + endpoint.lstrip("/"), params=query)
        except httpx.HTTPError as e:
            raise BackendError(f"MemberPress API request failed: {e}") from e
        if resp.status_code == 404:
            raise BackendUnavailable()
        if resp.status_code in (401, 403):
            raise BackendError(f"MemberPress API rejected the API key ({resp.status_code})")
        if resp.status_code >= 400:
            raise BackendError(f"MemberPress API GET {endpoint} returned {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendError("Failed to parse MemberPress API response.") from e
        if not isinstance(data, list):
            raise BackendError(f"MemberPress API GET {endpoint} returned {type(data).__name__}, expected a list")
        return data

    async def get_members(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        return [_member_record(m) for m in await self._get("members", filters)]

    async def get_memberships(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        return [_membership_record(m) for m in await self._get("memberships", filters)]

    async def get_transactions(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        return [_transaction_record(t) for t in await self._get("transactions", filters)]

    async def get_subscriptions(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        records = [_subscription_record(s) for s in await self._get("subscriptions", filters)]
        status = (filters or {}).get("status")
        if status:
            records = [r for r in records if r.get("status") == status]
        return records

    async def get_best_selling(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        """Memberships ranked by completed transactions."""
        transactions = await self.get_transactions({"status": "complete"})
        counts = Counter(str(t.get("membership")) for t in transactions if t.get("status") in ("complete", "completed"))
        return [{"membership": title, "sales": sales} for title, sales in counts.most_common(int((filters or {}).get("limit") or 10))]

    async def get_new_members_this_month(self, filters: Dict[str, Any], formatted: bool = False) -> List[Dict[str, Any]]:
        month_prefix = datetime.now().strftime("%Y-%m")
        members = await self.get_members(filters)
        return [m for m in members if str(m.get("registered") or "").startswith(month_prefix)]

    async def get_data_summary(self) -> Dict[str, Any]:
        """Counts plus the membership list. A failing section is logged and left at zero."""
        summary: Dict[str, Any] = {
            "members": [],
            "memberships": [],
            "transactions": [],
            "subscriptions": [],
            "total_members": 0,
            "total_memberships": 0,
            "transaction_count": 0,
            "subscription_count": 0,
            "status": "ok",
        }
        sections = (
            ("members", "total_members", self.get_members),
            ("memberships", "total_memberships", self.get_memberships),
            ("transactions", "transaction_count", self.get_transactions),
            ("subscriptions", "subscription_count", self.get_subscriptions),
        )
        for key, count_key, fetch in sections:
            try:
                records = await fetch({})
            except BackendUnavailable:
                raise
            except BackendError as e:
                logger.warning("MemberPress summary: {} unavailable: {}", key, e)
                summary["status"] = "partial"
                continue
            summary[key] = records
            summary[count_key] = len(records)
        return summary
