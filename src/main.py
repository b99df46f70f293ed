"""Application wiring for the EMR intake service.

Builds the configured storage adapter and runs the HTTP server. The
adapter is constructed explicitly and handed to the FastAPI application
(no module-level singleton), so tests and the CLI can substitute their own.
"""

import logging
from typing import Optional

import uvicorn

from src.adapters.storage import DuckDBAdapter, PostgreSQLAdapter
from src.domain.ports import StoragePort
from src.infrastructure.config_manager import DatabaseConfig, get_database_config
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_storage_adapter(db_config: Optional[DatabaseConfig] = None) -> StoragePort:
    """Create storage adapter based on configuration.

    Parameters:
        db_config: Database configuration; loaded from the environment if omitted

    Returns:
        StoragePort: Configured storage adapter instance

    Raises:
        ValueError: If database type is unsupported
    """
    db_config = db_config or get_database_config()

    if db_config.db_type == "duckdb":
        logger.info(f"Initializing DuckDB adapter with path: {db_config.db_path or ':memory:'}")
        return DuckDBAdapter(db_config=db_config, write_retries=settings.write_retries)
    elif db_config.db_type == "postgresql":
        logger.info(f"Initializing PostgreSQL adapter with host: {db_config.host}")
        return PostgreSQLAdapter(db_config=db_config)
    else:
        raise ValueError(f"Unsupported database type: {db_config.db_type}")


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run_server()
