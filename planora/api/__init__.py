"""HTTP API for the event planning assistant."""
from .routes import router

__all__ = ["router"]
