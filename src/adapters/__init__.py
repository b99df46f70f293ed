"""Adapters layer for the EMR intake service.

This module contains the storage adapters that implement the StoragePort
interface defined in the domain layer, mapping the Patient aggregate,
attachments and encounters onto DuckDB or PostgreSQL.
"""
