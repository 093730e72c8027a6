"""Mini README: Service interface package for the grant ledger.

The interface exposes the ledger operations as a FastAPI application so a
separate front end can drive grants, budgets, expenses and imports over
HTTP. ``create_application`` is the primary entry point.
"""

from .web_app import create_application

__all__ = ["create_application"]
