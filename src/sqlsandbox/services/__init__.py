"""HTTP service layer (REST API and middleware)."""

from sqlsandbox.services.rest_api import create_rest_app

__all__ = [
    "create_rest_app",
]
