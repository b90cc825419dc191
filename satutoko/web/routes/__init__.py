"""Route modules for the console web interface.

This package contains all API route modules:
- console: Full snapshot endpoint
- queries: Query set editing
- search: Starting a search
- history: Session history listing, loading and deletion
- expansion: Expanded shop/query toggles
"""

from satutoko.web.routes.console import router as console_router
from satutoko.web.routes.expansion import router as expansion_router
from satutoko.web.routes.history import router as history_router
from satutoko.web.routes.queries import router as queries_router
from satutoko.web.routes.search import router as search_router

__all__ = [
    "console_router",
    "expansion_router",
    "history_router",
    "queries_router",
    "search_router",
]
