#!/usr/bin/env python3

from ..clients.database_client import DatabaseClient

# Global database client instance
_database_client = None


def get_database_client() -> DatabaseClient:
    """Get or create global database client instance"""
    global _database_client
    if _database_client is None:
        _database_client = DatabaseClient()

    return _database_client


def cleanup_connections():
    """Clean up global connections on application shutdown"""
    global _database_client
    if _database_client is not None:
        _database_client.close()
        _database_client = None
