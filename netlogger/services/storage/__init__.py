"""
Storage Service

Local SQLite buffer between capture and remote sync.
"""

from .local_db import LocalStore

__all__ = ["LocalStore"]
