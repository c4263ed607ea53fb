"""CORS and error handling middleware for the grading API."""

from .cors import setup_cors_middleware
from .error_handling import setup_error_handling_middleware

__all__ = [
    "setup_cors_middleware",
    "setup_error_handling_middleware"
] 