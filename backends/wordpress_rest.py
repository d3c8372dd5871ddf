"""
Site backend over the WordPress REST API (wp-json/wp/v2), authenticated with an application password.
"""

import secrets
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from backends.interfaces import BackendError, BackendUnavailable


def _rendered(value: Any) -> Any:
    if isinstance(value, dict) and "rendered" in value:
        return value["rendered"]
    return value


def _post_record(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": data.get("id"),
        "title": _rendered(data.get("title")),
        "status": data.get("status"),
        "date": data.get("date"),
        "link": data.get("link"),
        "type": data.get("type"),
    }


def _plugin_record(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "path": data.get("plugin", ""),
        "name": _rendered(data.get("name")) or data.get("plugin", ""),
        "version": data.get("version", ""),
        "active": data.get("status") == "active",
        "status": data.get("status", ""),
    }


class WordPressRestBackend:
    def __init__(
        self,
        site_url: str,
        username: str = "",
        app_password: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not site_url:
            raise BackendUnavailable("The WordPress site API is not configured (site_url is empty).")
        self.base_url = site_url.rstrip("/") + "/wp-json"
        auth = httpx.BasicAuth(username, app_password) if username and app_password else None
        self._client = httpx.AsyncClient(base_url=self.base_url, auth=auth, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"WordPress API request failed: {e}") from e
        if resp.status_code == 404 and path.startswith("/wp/v2/plugins"):
            raise BackendUnavailable("The WordPress plugins endpoint is not available on this site.")
        if resp.status_code >= 400:
            try:
                body = resp.json()
                message = body.get("message", "") if isinstance(body, dict) else ""
            except ValueError:
                message = resp.text[:200]
            raise BackendError(f"WordPress API {method} {path} returned {resp.status_code}: {message}")
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"WordPress API {method} {path} returned invalid JSON") from e

    # --- SiteBackend ---

    async def create_post(self, title: str, content: str, status: str = "draft", post_type: str = "post") -> Dict[str, Any]:
        endpoint = "/wp/v2/pages" if post_type == "page" else "/wp/v2/posts"
        data = await self._request("POST", endpoint, json={"title": title, "content": content, "status": status or "draft"})
        return _post_record(data)

    async def update_post(self, post_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", f"/wp/v2/posts/{int(post_id)}", json=fields)
        return _post_record(data)

    async def get_post(self, post_id: int) -> Dict[str, Any]:
        data = await self._request("GET", f"/wp/v2/posts/{int(post_id)}", params={"context": "edit"})
        record = _post_record(data)
        record["content"] = _rendered(data.get("content"))
        return record

    async def get_posts(self, limit: int = 20, post_type: str = "post") -> List[Dict[str, Any]]:
        endpoint = "/wp/v2/pages" if post_type == "page" else "/wp/v2/posts"
        data = await self._request("GET", endpoint, params={"per_page": max(1, min(100, int(limit))), "status": "any", "context": "edit"})
        return [_post_record(p) for p in data or []]

    async def create_user(self, username: str, email: str, role: str = "subscriber") -> Dict[str, Any]:
        data = await self._request("POST", "/wp/v2/users", json={
            "username": username,
            "email": email,
            "roles": [role or "subscriber"],
            "password": secrets.token_urlsafe(16),
        })
        return {"id": data.get("id"), "username": data.get("username", username), "email": email, "roles": data.get("roles", [role])}

    async def get_users(self, limit: int = 20) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/wp/v2/users", params={"per_page": max(1, min(100, int(limit))), "context": "edit"})
        return [
            {
                "id": u.get("id"),
                "username": u.get("username") or u.get("slug"),
                "name": u.get("name"),
                "email": u.get("email", ""),
                "roles": u.get("roles") or [],
            }
            for u in data or []
        ]

    async def get_plugins(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/wp/v2/plugins")
        return [_plugin_record(p) for p in data or []]

    async def set_plugin_status(self, plugin: str, active: bool) -> Dict[str, Any]:
        data = await self._request("POST", f"/wp/v2/plugins/{plugin}", json={"status": "active" if active else "inactive"})
        return _plugin_record(data)

    async def get_themes(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/wp/v2/themes")
        return [
            {"stylesheet": t.get("stylesheet"), "name": _rendered(t.get("name")), "status": t.get("status"), "version": t.get("version")}
            for t in data or []
        ]

    async def activate_theme(self, stylesheet: str) -> Dict[str, Any]:
        data = await self._request("POST", f"/wp/v2/themes/{stylesheet}", json={"status": "active"})
        return {"stylesheet": data.get("stylesheet", stylesheet), "status": data.get("status", "active")}

    async def get_option(self, name: str) -> Any:
        data = await self._request("GET", "/wp/v2/settings")
        return (data or {}).get(name)

    async def get_site_info(self) -> Dict[str, Any]:
        data = await self._request("GET", "/")
        return {
            "Site Name": data.get("name", ""),
            "Site URL": data.get("url", ""),
            "Home URL": data.get("home", ""),
            "Timezone": data.get("timezone_string", "") or data.get("gmt_offset", ""),
            "REST Namespaces": ", ".join(data.get("namespaces") or []),
        }

    async def execute_action(self, action: str, params: Dict[str, Any]) -> Any:
        """Dispatch a wp_api action to the matching endpoint. Raises BackendError for unknown actions."""
        logger.debug("wp_api action {} with {}", action, sorted(params))
        limit = int(params.get("limit") or 20)
        if action in ("create_post", "create_page"):
            return await self.create_post(
                params.get("title", ""), params.get("content", ""), params.get("status") or "draft",
                post_type="page" if action == "create_page" else "post",
            )
        if action == "update_post":
            post_id = params.get("post_id") or params.get("id")
            if not post_id:
                raise BackendError("Missing required parameter: post_id")
            fields = {k: params[k] for k in ("title", "content", "status") if params.get(k) is not None}
            return await self.update_post(post_id, fields)
        if action == "get_post":
            post_id = params.get("post_id") or params.get("id")
            if not post_id:
                raise BackendError("Missing required parameter: post_id")
            return await self.get_post(post_id)
        if action == "get_posts":
            return await self.get_posts(limit=limit, post_type=params.get("post_type") or "post")
        if action == "create_user":
            if not params.get("username") or not params.get("email"):
                raise BackendError("Missing required parameter: username and email")
            return await self.create_user(params["username"], params["email"], params.get("role") or "subscriber")
        if action == "get_users":
            return await self.get_users(limit=limit)
        if action == "get_plugins":
            return await self.get_plugins()
        if action in ("activate_plugin", "deactivate_plugin"):
            if not params.get("plugin"):
                raise BackendError("Missing required parameter: plugin")
            return await self.set_plugin_status(params["plugin"], action == "activate_plugin")
        if action == "get_themes":
            return await self.get_themes()
        if action == "activate_theme":
            if not params.get("theme"):
                raise BackendError("Missing required parameter: theme")
            return await self.activate_theme(params["theme"])
        raise BackendError(f"Unsupported action: {action}")
