"""API route modules for the COB backend.

This package contains focused routers that are registered with the main FastAPI app.

Routers:
- cob: Coordination of benefits determination and record management
"""

from .cob import router as cob_router

__all__ = ["cob_router"]
