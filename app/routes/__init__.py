# Routes package
# JSON API routers and the server-rendered pages of the polling app

from . import auth_routes
from . import poll_routes
from . import vote_routes
from . import admin_routes
from . import settings_routes
from . import page_routes

__all__ = [
    "auth_routes",
    "poll_routes",
    "vote_routes",
    "admin_routes",
    "settings_routes",
    "page_routes"
]
