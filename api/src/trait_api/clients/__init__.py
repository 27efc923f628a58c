"""
Client Layer

This package contains low-level client wrappers for external services.
Clients handle communication with external systems but contain no business logic.

Modules:
- database_client: SQLAlchemy engine and session factory for the trait database
"""

from .database_client import DatabaseClient

__all__ = [
    'DatabaseClient',
]
