# Route modules for the tool API: auth and tool_routes.
# Each module provides handler factories or Depends used by core.app.create_app to register routes.

from core.routes import auth
from core.routes import tool_routes

__all__ = ["auth", "tool_routes"]
