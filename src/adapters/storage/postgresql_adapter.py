"""PostgreSQL Storage Adapter.

This adapter implements the StoragePort contract for persisting patient
intake records to PostgreSQL, the production datastore for multi-worker
deployments.

Security Impact:
    - Only schema-validated documents reach this adapter
    - All statements are parameterized
    - Connection credentials are managed via configuration and never logged
    - SSL connections supported for secure network communication

Architecture:
    - Implements StoragePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and config
    - Documents are stored as JSONB; binary uploads as BYTEA
    - A section write is one INSERT ... ON CONFLICT DO UPDATE statement
      guarded by the existence of the patient row, so concurrent writers
      to different sections never touch the same row
    - Connection pooling for performance
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Optional

import psycopg2
from psycopg2 import errors, pool
from psycopg2.extras import Json

from src.domain.ports import (
    ENCOUNTER_GROUP_COLUMNS,
    Attachment,
    EncounterQuery,
    Result,
    StorageError,
    StoragePort,
    contains_pattern,
)
from src.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)

PATIENT_COLUMNS = "patient_id, demographics, photo_reference, created_at, updated_at"
SECTION_COLUMNS = "section_key, payload, state, attachment_reference, updated_at"
ENCOUNTER_COLUMNS = "record_id, kind, document, created_at, updated_at"

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS patients (
        patient_id VARCHAR(36) PRIMARY KEY,
        first_name VARCHAR(255),
        last_name VARCHAR(255),
        demographics JSONB NOT NULL,
        photo_reference VARCHAR(64),
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS patient_sections (
        patient_id VARCHAR(36) NOT NULL REFERENCES patients(patient_id) ON DELETE CASCADE,
        section_key VARCHAR(64) NOT NULL,
        payload JSONB NOT NULL,
        state VARCHAR(16) NOT NULL,
        attachment_reference VARCHAR(64),
        updated_at TIMESTAMP NOT NULL,
        PRIMARY KEY (patient_id, section_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attachments (
        reference VARCHAR(64) PRIMARY KEY,
        content BYTEA NOT NULL,
        content_type VARCHAR(64) NOT NULL,
        filename VARCHAR(255),
        size_bytes BIGINT NOT NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS encounters (
        record_id VARCHAR(36) PRIMARY KEY,
        kind VARCHAR(16) NOT NULL,
        patient_name VARCHAR(512),
        category VARCHAR(64),
        doctor VARCHAR(255),
        urgency VARCHAR(16),
        event_date DATE,
        document JSONB NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_patients_created ON patients(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_patients_photo ON patients(photo_reference)",
    "CREATE INDEX IF NOT EXISTS idx_sections_attachment ON patient_sections(attachment_reference)",
    "CREATE INDEX IF NOT EXISTS idx_encounters_kind_created ON encounters(kind, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_encounters_event_date ON encounters(event_date)",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _name_parts(demographics: dict) -> tuple[Optional[str], Optional[str]]:
    name = demographics.get("name") or {}
    return name.get("first"), name.get("last")


def _put_attachment(cursor, attachment: Optional[Attachment]) -> None:
    if attachment is None:
        return
    # DO UPDATE takes the row lock that release_attachment waits on
    cursor.execute(
        "INSERT INTO attachments (reference, content, content_type, filename, size_bytes, created_at) "
        "VALUES (%s, %s, %s, %s, %s, %s) "
        "ON CONFLICT (reference) DO UPDATE SET size_bytes = EXCLUDED.size_bytes",
        [
            attachment.reference, psycopg2.Binary(attachment.content), attachment.content_type,
            attachment.filename, len(attachment.content), _utcnow(),
        ]
    )


def _patient_row(row: tuple) -> dict:
    return {
        "patient_id": row[0],
        "demographics": row[1],
        "photo_reference": row[2],
        "created_at": row[3],
        "updated_at": row[4],
    }


def _section_row(row: tuple) -> dict:
    return {
        "section_key": row[0],
        "payload": row[1],
        "state": row[2],
        "attachment_reference": row[3],
        "updated_at": row[4],
    }


def _encounter_row(row: tuple) -> dict:
    return {
        "record_id": row[0],
        "kind": row[1],
        "document": row[2],
        "created_at": row[3],
        "updated_at": row[4],
    }


class PostgreSQLAdapter(StoragePort):
    """PostgreSQL implementation of StoragePort for production data storage.

    Security Impact:
        - Connection credentials are validated but never logged
        - SSL mode defaults to 'prefer'
        - Foreign keys keep section rows from outliving their patient

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        connection_string: Full PostgreSQL connection string
        host: Database host
        port: Database port (default: 5432)
        database: Database name
        username: Database username
        password: Database password
        ssl_mode: SSL mode (require, prefer, disable)
        pool_size: Connection pool size
        max_overflow: Maximum connection pool overflow

    Example Usage:
        ```python
        adapter = PostgreSQLAdapter(db_config=get_database_config())
        adapter.initialize_schema()
        adapter.write_section(patient_id, "social_history.alcohol", payload, "complete")
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        connection_string: Optional[str] = None,
        host: Optional[str] = None,
        port: int = 5432,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ssl_mode: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10
    ):
        """Initialize PostgreSQL adapter.

        Raises:
            StorageError: If the configuration is not a PostgreSQL config or
                lacks host and database

        Note:
            Priority order: db_config > connection_string > individual parameters
        """
        self._connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._initialized = False
        self._schema_lock = threading.Lock()

        if db_config:
            if db_config.db_type != "postgresql":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match PostgreSQL adapter",
                    operation="__init__"
                )

            if db_config.connection_string:
                self.connection_params = {"dsn": db_config.connection_string.get_secret_value()}
            else:
                if not all([db_config.host, db_config.database]):
                    raise StorageError(
                        "PostgreSQL DatabaseConfig requires host and database",
                        operation="__init__"
                    )
                self.connection_params = {
                    "host": db_config.host,
                    "port": db_config.port or 5432,
                    "database": db_config.database,
                    "user": db_config.username,
                    "sslmode": db_config.ssl_mode or "prefer",
                }
                if db_config.password:
                    self.connection_params["password"] = db_config.password.get_secret_value()

            self.pool_size = db_config.pool_size
            self.max_overflow = db_config.max_overflow

        elif connection_string:
            self.connection_params = {"dsn": connection_string}
            self.pool_size = pool_size
            self.max_overflow = max_overflow
        else:
            if not all([host, database]):
                raise StorageError(
                    "PostgreSQL adapter requires either db_config, connection_string, or (host and database)",
                    operation="__init__"
                )
            self.connection_params = {
                "host": host,
                "port": port,
                "database": database,
                "user": username,
                "password": password,
                "sslmode": ssl_mode or "prefer",
            }
            self.pool_size = pool_size
            self.max_overflow = max_overflow

    def _get_connection_pool(self) -> pool.ThreadedConnectionPool:
        """Get or create PostgreSQL connection pool.

        Returns:
            PostgreSQL connection pool instance
        """
        if self._connection_pool is None:
            try:
                self._connection_pool = pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self.pool_size + self.max_overflow,
                    **self.connection_params
                )
                logger.info("Created PostgreSQL connection pool")
            except Exception as e:
                raise StorageError(
                    f"Failed to create PostgreSQL connection pool: {str(e)}",
                    operation="connect",
                    details={"host": self.connection_params.get("host", "N/A")}
                )
        return self._connection_pool

    def _get_connection(self):
        """Get a connection from the pool.

        Raises:
            StorageError: If connection cannot be obtained
        """
        try:
            connection_pool = self._get_connection_pool()
            return connection_pool.getconn()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to get connection from pool: {str(e)}",
                operation="get_connection"
            )

    def _return_connection(self, conn):
        try:
            connection_pool = self._get_connection_pool()
            connection_pool.putconn(conn)
        except Exception as e:
            logger.warning(f"Error returning connection to pool: {str(e)}")

    def _run(self, operation: str, work, details: Optional[dict] = None) -> Result:
        """Run work(cursor) in one transaction on a pooled connection.

        The transaction commits when work returns and rolls back when it
        raises; the connection always goes back to the pool.
        """
        conn = None
        try:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                value = work(cursor)
            finally:
                cursor.close()
            conn.commit()
            return Result.success_result(value)
        except Exception as e:
            if conn:
                conn.rollback()
            error_msg = f"Failed to {operation.replace('_', ' ')}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation=operation, details=details),
                error_type="StorageError"
            )
        finally:
            if conn:
                self._return_connection(conn)

    def initialize_schema(self) -> Result[None]:
        """Initialize database schema (tables, indexes, constraints).

        Returns:
            Result[None]: Success or failure result
        """
        with self._schema_lock:
            if self._initialized:
                return Result.success_result(None)

            def work(cursor):
                for statement in SCHEMA_STATEMENTS:
                    cursor.execute(statement)

            result = self._run("initialize_schema", work)
            if result.is_success():
                self._initialized = True
                logger.info("Database schema initialized successfully")
            return result

    def ping(self) -> Result[float]:
        def work(cursor):
            started = time.perf_counter()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            return (time.perf_counter() - started) * 1000
        return self._run("ping", work)

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def insert_patient(
        self,
        patient_id: str,
        demographics: dict,
        photo_reference: Optional[str],
        scaffolds: dict[str, Any],
        attachment: Optional[Attachment] = None
    ) -> Result[str]:
        """Insert a patient row, its scaffold sections and photo bytes in one transaction."""
        def work(cursor):
            now = _utcnow()
            first, last = _name_parts(demographics)
            _put_attachment(cursor, attachment)
            cursor.execute(
                "INSERT INTO patients (patient_id, first_name, last_name, demographics, "
                "photo_reference, created_at, updated_at) VALUES (%s, %s, %s, %s, %s, %s, %s)",
                [patient_id, first, last, Json(demographics), photo_reference, now, now]
            )
            for section_key, payload in scaffolds.items():
                cursor.execute(
                    "INSERT INTO patient_sections (patient_id, section_key, payload, state, "
                    "attachment_reference, updated_at) VALUES (%s, %s, %s, 'incomplete', NULL, %s)",
                    [patient_id, section_key, Json(payload), now]
                )
            logger.info(f"Inserted patient {patient_id} with {len(scaffolds)} scaffold sections")
            return patient_id
        return self._run("insert_patient", work, {"patient_id": patient_id})

    def get_patient(self, patient_id: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE patient_id = %s", [patient_id])
            row = cursor.fetchone()
            return _patient_row(row) if row else None
        return self._run("get_patient", work, {"patient_id": patient_id})

    def update_patient(
        self,
        patient_id: str,
        demographics: dict,
        photo_reference: Optional[str],
        attachment: Optional[Attachment] = None
    ) -> Result[bool]:
        def work(cursor):
            first, last = _name_parts(demographics)
            cursor.execute(
                "UPDATE patients SET first_name = %s, last_name = %s, demographics = %s, "
                "photo_reference = %s, updated_at = %s WHERE patient_id = %s",
                [first, last, Json(demographics), photo_reference, _utcnow(), patient_id]
            )
            if cursor.rowcount == 0:
                return False
            _put_attachment(cursor, attachment)
            return True
        return self._run("update_patient", work, {"patient_id": patient_id})

    def delete_patient(self, patient_id: str) -> Result[bool]:
        """Delete a patient; section rows go with it (ON DELETE CASCADE)."""
        def work(cursor):
            cursor.execute("DELETE FROM patients WHERE patient_id = %s", [patient_id])
            return cursor.rowcount > 0
        return self._run("delete_patient", work, {"patient_id": patient_id})

    def list_patients(
        self,
        limit: int = 100,
        offset: int = 0,
        name_contains: Optional[str] = None
    ) -> Result[list[dict]]:
        def work(cursor):
            query = (
                "SELECT p.patient_id, p.demographics, p.photo_reference, p.created_at, p.updated_at, "
                "s.payload FROM patients p LEFT JOIN patient_sections s "
                "ON s.patient_id = p.patient_id AND s.section_key = 'contact_info'"
            )
            params: list[Any] = []
            if name_contains:
                query += " WHERE (p.first_name ILIKE %s ESCAPE '\\' OR p.last_name ILIKE %s ESCAPE '\\')"
                pattern = contains_pattern(name_contains)
                params.extend([pattern, pattern])
            query += " ORDER BY p.created_at DESC, p.patient_id LIMIT %s OFFSET %s"
            params.extend([limit, offset])
            cursor.execute(query, params)

            rows = []
            for row in cursor.fetchall():
                patient = _patient_row(row[:5])
                patient["contact_info"] = row[5]
                rows.append(patient)
            return rows
        return self._run("list_patients", work)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def write_section(
        self,
        patient_id: str,
        section_key: str,
        payload: Any,
        state: str,
        attachment_reference: Optional[str] = None,
        attachment: Optional[Attachment] = None
    ) -> Result[bool]:
        """Upsert one section row with a single conditional statement.

        Attachment bytes, when given, are stored in the same transaction
        once the section row has been written.

        Returns:
            Result[bool]: False if the patient does not exist (nothing written)
        """
        def work(cursor):
            try:
                cursor.execute(
                    """
                    INSERT INTO patient_sections (
                        patient_id, section_key, payload, state, attachment_reference, updated_at
                    )
                    SELECT %s, %s, %s, %s, %s, %s
                    WHERE EXISTS (SELECT 1 FROM patients WHERE patient_id = %s)
                    ON CONFLICT (patient_id, section_key) DO UPDATE SET
                        payload = EXCLUDED.payload,
                        state = EXCLUDED.state,
                        attachment_reference = EXCLUDED.attachment_reference,
                        updated_at = EXCLUDED.updated_at
                    """,
                    [
                        patient_id, section_key, Json(payload), state,
                        attachment_reference, _utcnow(), patient_id,
                    ]
                )
            except errors.ForeignKeyViolation:
                # Patient deleted concurrently
                return False
            if cursor.rowcount == 0:
                return False
            _put_attachment(cursor, attachment)
            return True
        return self._run("write_section", work, {"patient_id": patient_id, "section_key": section_key})

    def get_section(self, patient_id: str, section_key: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(
                f"SELECT {SECTION_COLUMNS} FROM patient_sections "
                "WHERE patient_id = %s AND section_key = %s",
                [patient_id, section_key]
            )
            row = cursor.fetchone()
            return _section_row(row) if row else None
        return self._run("get_section", work, {"patient_id": patient_id, "section_key": section_key})

    def get_sections(self, patient_id: str) -> Result[list[dict]]:
        def work(cursor):
            cursor.execute(
                f"SELECT {SECTION_COLUMNS} FROM patient_sections "
                "WHERE patient_id = %s ORDER BY section_key",
                [patient_id]
            )
            return [_section_row(row) for row in cursor.fetchall()]
        return self._run("get_sections", work, {"patient_id": patient_id})

    def delete_section(self, patient_id: str, section_key: str) -> Result[bool]:
        def work(cursor):
            cursor.execute(
                "DELETE FROM patient_sections WHERE patient_id = %s AND section_key = %s",
                [patient_id, section_key]
            )
            return cursor.rowcount > 0
        return self._run("delete_section", work, {"patient_id": patient_id, "section_key": section_key})

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def get_attachment(self, reference: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(
                "SELECT reference, content, content_type, filename, size_bytes, created_at "
                "FROM attachments WHERE reference = %s",
                [reference]
            )
            row = cursor.fetchone()
            if not row:
                return None
            return {
                "reference": row[0],
                "content": bytes(row[1]),
                "content_type": row[2],
                "filename": row[3],
                "size_bytes": row[4],
                "created_at": row[5],
            }
        return self._run("get_attachment", work, {"reference": reference})

    def release_attachment(self, reference: str) -> Result[bool]:
        """Delete unreferenced attachment bytes.

        The attachment row is locked first, so a writer storing the same
        bytes either commits before the reference check (and the bytes are
        kept) or re-inserts them after the delete commits.
        """
        def work(cursor):
            cursor.execute("SELECT 1 FROM attachments WHERE reference = %s FOR UPDATE", [reference])
            if cursor.fetchone() is None:
                return False
            cursor.execute(
                "DELETE FROM attachments WHERE reference = %s "
                "AND NOT EXISTS (SELECT 1 FROM patients WHERE photo_reference = %s) "
                "AND NOT EXISTS (SELECT 1 FROM patient_sections WHERE attachment_reference = %s)",
                [reference, reference, reference]
            )
            return cursor.rowcount > 0
        return self._run("release_attachment", work, {"reference": reference})

    # ------------------------------------------------------------------
    # Visits and appointments
    # ------------------------------------------------------------------

    def insert_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[str]:
        def work(cursor):
            now = _utcnow()
            cursor.execute(
                "INSERT INTO encounters (record_id, kind, patient_name, category, doctor, urgency, "
                "event_date, document, created_at, updated_at) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                [
                    record_id, kind,
                    index.get("patient_name"), index.get("category"), index.get("doctor"),
                    index.get("urgency"), index.get("event_date"),
                    Json(document), now, now,
                ]
            )
            return record_id
        return self._run("insert_encounter", work, {"kind": kind, "record_id": record_id})

    def replace_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[bool]:
        def work(cursor):
            cursor.execute(
                "UPDATE encounters SET patient_name = %s, category = %s, doctor = %s, urgency = %s, "
                "event_date = %s, document = %s, updated_at = %s WHERE record_id = %s AND kind = %s",
                [
                    index.get("patient_name"), index.get("category"), index.get("doctor"),
                    index.get("urgency"), index.get("event_date"),
                    Json(document), _utcnow(), record_id, kind,
                ]
            )
            return cursor.rowcount > 0
        return self._run("replace_encounter", work, {"kind": kind, "record_id": record_id})

    def get_encounter(self, kind: str, record_id: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(
                f"SELECT {ENCOUNTER_COLUMNS} FROM encounters WHERE record_id = %s AND kind = %s",
                [record_id, kind]
            )
            row = cursor.fetchone()
            return _encounter_row(row) if row else None
        return self._run("get_encounter", work, {"kind": kind, "record_id": record_id})

    def list_encounters(self, query: EncounterQuery) -> Result[list[dict]]:
        def work(cursor):
            clauses = ["kind = %s"]
            params: list[Any] = [query.kind]
            if query.name_contains:
                clauses.append("patient_name ILIKE %s ESCAPE '\\'")
                params.append(contains_pattern(query.name_contains))
            if query.category:
                clauses.append("category = %s")
                params.append(query.category)
            if query.doctor_contains:
                clauses.append("doctor ILIKE %s ESCAPE '\\'")
                params.append(contains_pattern(query.doctor_contains))
            if query.urgency:
                clauses.append("urgency = %s")
                params.append(query.urgency)
            if query.event_from:
                clauses.append("event_date >= %s")
                params.append(query.event_from)
            if query.event_to:
                clauses.append("event_date <= %s")
                params.append(query.event_to)
            if query.created_from:
                clauses.append("created_at >= %s")
                params.append(query.created_from)
            if query.created_to:
                clauses.append("created_at < %s")
                params.append(query.created_to)
            params.extend([query.limit, query.offset])
            cursor.execute(
                f"SELECT {ENCOUNTER_COLUMNS} FROM encounters WHERE {' AND '.join(clauses)} "
                "ORDER BY created_at DESC, record_id LIMIT %s OFFSET %s",
                params
            )
            return [_encounter_row(row) for row in cursor.fetchall()]
        return self._run("list_encounters", work, {"kind": query.kind})

    def delete_encounter(self, kind: str, record_id: str) -> Result[bool]:
        def work(cursor):
            cursor.execute("DELETE FROM encounters WHERE record_id = %s AND kind = %s", [record_id, kind])
            return cursor.rowcount > 0
        return self._run("delete_encounter", work, {"kind": kind, "record_id": record_id})

    def count_encounters(self, kind: str, group_by: str) -> Result[list[tuple]]:
        if group_by not in ENCOUNTER_GROUP_COLUMNS:
            raise ValueError(f"Cannot group encounters by {group_by!r}")

        def work(cursor):
            cursor.execute(
                f"SELECT {group_by}, count(*) AS n FROM encounters WHERE kind = %s "
                f"GROUP BY {group_by} ORDER BY n DESC, {group_by} NULLS LAST",
                [kind]
            )
            return [(row[0], int(row[1])) for row in cursor.fetchall()]
        return self._run("count_encounters", work, {"kind": kind, "group_by": group_by})

    def close(self) -> None:
        """Close storage connection pool and release resources."""
        if self._connection_pool is not None:
            try:
                self._connection_pool.closeall()
                self._connection_pool = None
                logger.info("Closed PostgreSQL connection pool")
            except Exception as e:
                logger.warning(f"Error closing connection pool: {str(e)}")
