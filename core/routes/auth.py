"""
API auth for the tool routes: verify X-API-Key or Bearer. Never raises except HTTPException(401).
"""
from fastapi import HTTPException, Request


def get_verify_auth(config):
    """Return a FastAPI dependency that enforces auth_api_key when auth_enabled is set in config."""
    def verify_auth(request: Request) -> None:
        if not getattr(config, "auth_enabled", False):
            return
        expected = (getattr(config, "auth_api_key", "") or "").strip()
        if not expected:
            return
        key = (request.headers.get("X-API-Key") or "").strip()
        if not key:
            auth_h = (request.headers.get("Authorization") or "").strip()
            if auth_h.startswith("Bearer "):
                key = auth_h[7:].strip()
        if key != expected:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return verify_auth
