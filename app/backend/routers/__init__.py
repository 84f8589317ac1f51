"""
Routers package for FastAPI endpoints.

Organized by domain:
- batches: File selection, extraction, status, results and CSV export
"""

from . import batches

__all__ = ["batches"]
