"""
HTTP API - FastAPI application for the retail analytics query service
"""
from .main import create_app

__all__ = ["create_app"]
