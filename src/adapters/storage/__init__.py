"""Storage adapters for the EMR intake service.

This module contains storage adapters that implement the StoragePort interface
for persisting patients, their sections, attachments and encounters.
"""

from src.adapters.storage.duckdb_adapter import DuckDBAdapter
from src.adapters.storage.postgresql_adapter import PostgreSQLAdapter

__all__ = ["DuckDBAdapter", "PostgreSQLAdapter"]
