"""Shared SQLAlchemy models registry for the statement database."""

from .finance import Base, StCategory, StImport, StTransaction

__all__ = [
    "Base",
    "StCategory",
    "StImport",
    "StTransaction",
]
