"""DuckDB Storage Adapter.

This adapter implements the StoragePort contract for persisting patient
intake records to DuckDB, an in-process database suited to single-node
deployments, development and tests (':memory:').

Security Impact:
    - Only schema-validated documents reach this adapter
    - All statements are parameterized
    - Connection details are never logged beyond the database path

Architecture:
    - Implements StoragePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and config
    - Every section is its own row in patient_sections keyed by
      (patient_id, section_key); a section write touches only that row
    - Each operation runs on its own cursor so concurrent requests get
      independent transactions; write-write conflicts are retried
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import duckdb

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

DEFAULT_WRITE_RETRIES = 3

PATIENT_COLUMNS = "patient_id, demographics, photo_reference, created_at, updated_at"
SECTION_COLUMNS = "section_key, payload, state, attachment_reference, updated_at"
ENCOUNTER_COLUMNS = "record_id, kind, document, created_at, updated_at"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _name_parts(demographics: dict) -> tuple[Optional[str], Optional[str]]:
    name = demographics.get("name") or {}
    return name.get("first"), name.get("last")


def _put_attachment(cursor, attachment: Optional[Attachment]) -> None:
    if attachment is None:
        return
    # Existing bytes are touched, not skipped, so a concurrent release of the
    # same reference conflicts with this transaction
    cursor.execute(
        "INSERT INTO attachments (reference, content, content_type, filename, size_bytes, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?) "
        "ON CONFLICT (reference) DO UPDATE SET size_bytes = excluded.size_bytes",
        [
            attachment.reference, attachment.content, attachment.content_type,
            attachment.filename, len(attachment.content), _utcnow(),
        ]
    )


def _patient_row(row: tuple) -> dict:
    return {
        "patient_id": row[0],
        "demographics": json.loads(row[1]),
        "photo_reference": row[2],
        "created_at": row[3],
        "updated_at": row[4],
    }


def _section_row(row: tuple) -> dict:
    return {
        "section_key": row[0],
        "payload": json.loads(row[1]),
        "state": row[2],
        "attachment_reference": row[3],
        "updated_at": row[4],
    }


def _encounter_row(row: tuple) -> dict:
    return {
        "record_id": row[0],
        "kind": row[1],
        "document": json.loads(row[2]),
        "created_at": row[3],
        "updated_at": row[4],
    }


class DuckDBAdapter(StoragePort):
    """DuckDB implementation of StoragePort.

    Security Impact:
        - Connection credentials are never logged
        - Statements are parameterized

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)
        write_retries: Attempts for a write that hits a transaction conflict

    Example Usage:
        ```python
        from src.infrastructure.config_manager import get_database_config

        adapter = DuckDBAdapter(db_config=get_database_config())
        result = adapter.initialize_schema()
        if result.is_success():
            adapter.write_section(patient_id, "contact_info", payload, "complete")
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        db_path: Optional[str] = None,
        write_retries: int = DEFAULT_WRITE_RETRIES
    ):
        """Initialize DuckDB adapter.

        Parameters:
            db_config: DatabaseConfig from configuration manager (preferred)
            db_path: Path to DuckDB database file (or ':memory:' for in-memory)
            write_retries: Attempts for a write that hits a transaction conflict

        Raises:
            StorageError: If db_config is not a DuckDB config or the database
                directory does not exist

        Note:
            If both db_config and db_path are provided, db_config takes precedence.
            If neither is provided, defaults to in-memory database.
        """
        if db_config:
            if db_config.db_type != "duckdb":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = db_config.db_path or ":memory:"
        elif db_path:
            self.db_path = db_path
        else:
            self.db_path = ":memory:"

        self.write_retries = max(1, write_retries)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection.

        Returns:
            DuckDB connection instance

        Raises:
            StorageError: If the database cannot be opened
        """
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        return self._connection

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        return self._get_connection().cursor()

    def _read(self, operation: str, work: Callable[[Any], Any], details: Optional[dict] = None) -> Result:
        cursor = None
        try:
            cursor = self._cursor()
            return Result.success_result(work(cursor))
        except Exception as e:
            error_msg = f"Failed to {operation.replace('_', ' ')}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation=operation, details=details),
                error_type="StorageError"
            )
        finally:
            if cursor is not None:
                cursor.close()

    def _write(self, operation: str, work: Callable[[Any], Any], details: Optional[dict] = None) -> Result:
        """Run work inside a transaction, retrying write-write conflicts.

        Parameters:
            operation: Operation name for logs and errors
            work: Callable receiving a cursor with an open transaction
            details: Identifiers reported on failure

        Returns:
            Result: The work's return value, or a StorageError failure
        """
        attempt = 0
        while True:
            attempt += 1
            cursor = None
            try:
                cursor = self._cursor()
                cursor.begin()
                value = work(cursor)
                cursor.commit()
                return Result.success_result(value)
            except duckdb.TransactionException as e:
                self._rollback(cursor)
                if attempt >= self.write_retries:
                    error_msg = f"Failed to {operation.replace('_', ' ')} after {attempt} attempts: {str(e)}"
                    logger.error(error_msg)
                    return Result.failure_result(
                        StorageError(error_msg, operation=operation, details=details),
                        error_type="StorageError"
                    )
                logger.warning(f"Transaction conflict in {operation}, retrying ({attempt}/{self.write_retries})")
                time.sleep(0.01 * attempt)
            except Exception as e:
                self._rollback(cursor)
                error_msg = f"Failed to {operation.replace('_', ' ')}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                return Result.failure_result(
                    StorageError(error_msg, operation=operation, details=details),
                    error_type="StorageError"
                )
            finally:
                if cursor is not None:
                    cursor.close()

    @staticmethod
    def _rollback(cursor) -> None:
        if cursor is None:
            return
        try:
            cursor.rollback()
        except duckdb.Error:
            # No transaction left to roll back
            pass

    def initialize_schema(self) -> Result[None]:
        """Initialize database schema (tables and indexes).

        Creates tables for:
        - patients: Demographics and photo reference per patient
        - patient_sections: One row per (patient, section)
        - attachments: Content-addressed binary uploads
        - encounters: Visit and Appointment documents with filter columns

        Returns:
            Result[None]: Success or failure result
        """
        try:
            conn = self._get_connection()

            conn.execute("""
                CREATE TABLE IF NOT EXISTS patients (
                    patient_id VARCHAR PRIMARY KEY,
                    first_name VARCHAR,
                    last_name VARCHAR,
                    demographics VARCHAR NOT NULL,
                    photo_reference VARCHAR,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS patient_sections (
                    patient_id VARCHAR NOT NULL,
                    section_key VARCHAR NOT NULL,
                    payload VARCHAR NOT NULL,
                    state VARCHAR NOT NULL,
                    attachment_reference VARCHAR,
                    updated_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (patient_id, section_key)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS attachments (
                    reference VARCHAR PRIMARY KEY,
                    content BLOB NOT NULL,
                    content_type VARCHAR NOT NULL,
                    filename VARCHAR,
                    size_bytes BIGINT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS encounters (
                    record_id VARCHAR PRIMARY KEY,
                    kind VARCHAR NOT NULL,
                    patient_name VARCHAR,
                    category VARCHAR,
                    doctor VARCHAR,
                    urgency VARCHAR,
                    event_date DATE,
                    document VARCHAR NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_patients_created ON patients(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_encounters_kind ON encounters(kind)")

            self._initialized = True
            logger.info("Database schema initialized successfully")
            return Result.success_result(None)

        except Exception as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="initialize_schema"),
                error_type="StorageError"
            )

    def ping(self) -> Result[float]:
        def work(cursor):
            started = time.perf_counter()
            cursor.execute("SELECT 1").fetchone()
            return (time.perf_counter() - started) * 1000
        return self._read("ping", work)

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
        """Insert a patient row and its scaffold sections in one transaction.

        Parameters:
            patient_id: New patient identifier
            demographics: Validated demographics document
            photo_reference: Attachment reference of the photo, if any
            scaffolds: section_key -> empty payload, stored with state "incomplete"
            attachment: Photo bytes, stored in the same transaction

        Returns:
            Result[str]: The patient_id
        """
        def work(cursor):
            now = _utcnow()
            first, last = _name_parts(demographics)
            _put_attachment(cursor, attachment)
            cursor.execute(
                "INSERT INTO patients (patient_id, first_name, last_name, demographics, "
                "photo_reference, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [patient_id, first, last, json.dumps(demographics), photo_reference, now, now]
            )
            for section_key, payload in scaffolds.items():
                cursor.execute(
                    "INSERT INTO patient_sections (patient_id, section_key, payload, state, "
                    "attachment_reference, updated_at) VALUES (?, ?, ?, 'incomplete', NULL, ?)",
                    [patient_id, section_key, json.dumps(payload), now]
                )
            logger.info(f"Inserted patient {patient_id} with {len(scaffolds)} scaffold sections")
            return patient_id
        return self._write("insert_patient", work, {"patient_id": patient_id})

    def get_patient(self, patient_id: str) -> Result[Optional[dict]]:
        def work(cursor):
            row = cursor.execute(
                f"SELECT {PATIENT_COLUMNS} FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
            return _patient_row(row) if row else None
        return self._read("get_patient", work, {"patient_id": patient_id})

    def update_patient(
        self,
        patient_id: str,
        demographics: dict,
        photo_reference: Optional[str],
        attachment: Optional[Attachment] = None
    ) -> Result[bool]:
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
            if not exists:
                return False
            _put_attachment(cursor, attachment)
            first, last = _name_parts(demographics)
            cursor.execute(
                "UPDATE patients SET first_name = ?, last_name = ?, demographics = ?, "
                "photo_reference = ?, updated_at = ? WHERE patient_id = ?",
                [first, last, json.dumps(demographics), photo_reference, _utcnow(), patient_id]
            )
            return True
        return self._write("update_patient", work, {"patient_id": patient_id})

    def delete_patient(self, patient_id: str) -> Result[bool]:
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
            if not exists:
                return False
            cursor.execute("DELETE FROM patient_sections WHERE patient_id = ?", [patient_id])
            cursor.execute("DELETE FROM patients WHERE patient_id = ?", [patient_id])
            return True
        return self._write("delete_patient", work, {"patient_id": patient_id})

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
                query += " WHERE (p.first_name ILIKE ? ESCAPE '\\' OR p.last_name ILIKE ? ESCAPE '\\')"
                pattern = contains_pattern(name_contains)
                params.extend([pattern, pattern])
            query += " ORDER BY p.created_at DESC, p.patient_id LIMIT ? OFFSET ?"
            params.extend([limit, offset])

            rows = []
            for row in cursor.execute(query, params).fetchall():
                patient = _patient_row(row[:5])
                patient["contact_info"] = json.loads(row[5]) if row[5] else None
                rows.append(patient)
            return rows
        return self._read("list_patients", work)

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
        """Upsert one section row, scoped to (patient_id, section_key).

        Returns:
            Result[bool]: False if the patient does not exist (nothing written)
        """
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
            if not exists:
                return False
            _put_attachment(cursor, attachment)
            cursor.execute(
                """
                INSERT INTO patient_sections (
                    patient_id, section_key, payload, state, attachment_reference, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (patient_id, section_key) DO UPDATE SET
                    payload = excluded.payload,
                    state = excluded.state,
                    attachment_reference = excluded.attachment_reference,
                    updated_at = excluded.updated_at
                """,
                [patient_id, section_key, json.dumps(payload), state, attachment_reference, _utcnow()]
            )
            return True
        return self._write(
            "write_section", work, {"patient_id": patient_id, "section_key": section_key}
        )

    def get_section(self, patient_id: str, section_key: str) -> Result[Optional[dict]]:
        def work(cursor):
            row = cursor.execute(
                f"SELECT {SECTION_COLUMNS} FROM patient_sections "
                "WHERE patient_id = ? AND section_key = ?",
                [patient_id, section_key]
            ).fetchone()
            return _section_row(row) if row else None
        return self._read("get_section", work, {"patient_id": patient_id, "section_key": section_key})

    def get_sections(self, patient_id: str) -> Result[list[dict]]:
        def work(cursor):
            rows = cursor.execute(
                f"SELECT {SECTION_COLUMNS} FROM patient_sections "
                "WHERE patient_id = ? ORDER BY section_key",
                [patient_id]
            ).fetchall()
            return [_section_row(row) for row in rows]
        return self._read("get_sections", work, {"patient_id": patient_id})

    def delete_section(self, patient_id: str, section_key: str) -> Result[bool]:
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM patient_sections WHERE patient_id = ? AND section_key = ?",
                [patient_id, section_key]
            ).fetchone()
            if not exists:
                return False
            cursor.execute(
                "DELETE FROM patient_sections WHERE patient_id = ? AND section_key = ?",
                [patient_id, section_key]
            )
            return True
        return self._write(
            "delete_section", work, {"patient_id": patient_id, "section_key": section_key}
        )

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def get_attachment(self, reference: str) -> Result[Optional[dict]]:
        def work(cursor):
            row = cursor.execute(
                "SELECT reference, content, content_type, filename, size_bytes, created_at "
                "FROM attachments WHERE reference = ?",
                [reference]
            ).fetchone()
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
        return self._read("get_attachment", work, {"reference": reference})

    def release_attachment(self, reference: str) -> Result[bool]:
        """Delete unreferenced attachment bytes with one conditional statement.

        A writer that stored the same bytes in a concurrent transaction
        touched the row, so the two transactions conflict and the loser is
        retried against the committed state.
        """
        def work(cursor):
            removed = cursor.execute(
                "DELETE FROM attachments WHERE reference = ? "
                "AND NOT EXISTS (SELECT 1 FROM patients WHERE photo_reference = ?) "
                "AND NOT EXISTS (SELECT 1 FROM patient_sections WHERE attachment_reference = ?) "
                "RETURNING reference",
                [reference, reference, reference]
            ).fetchall()
            return len(removed) > 0
        return self._write("release_attachment", work, {"reference": reference})

    # ------------------------------------------------------------------
    # Visits and appointments
    # ------------------------------------------------------------------

    def insert_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[str]:
        def work(cursor):
            now = _utcnow()
            cursor.execute(
                "INSERT INTO encounters (record_id, kind, patient_name, category, doctor, urgency, "
                "event_date, document, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    record_id, kind,
                    index.get("patient_name"), index.get("category"), index.get("doctor"),
                    index.get("urgency"), index.get("event_date"),
                    json.dumps(document), now, now,
                ]
            )
            return record_id
        return self._write("insert_encounter", work, {"kind": kind, "record_id": record_id})

    def replace_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[bool]:
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM encounters WHERE record_id = ? AND kind = ?", [record_id, kind]
            ).fetchone()
            if not exists:
                return False
            cursor.execute(
                "UPDATE encounters SET patient_name = ?, category = ?, doctor = ?, urgency = ?, "
                "event_date = ?, document = ?, updated_at = ? WHERE record_id = ? AND kind = ?",
                [
                    index.get("patient_name"), index.get("category"), index.get("doctor"),
                    index.get("urgency"), index.get("event_date"),
                    json.dumps(document), _utcnow(), record_id, kind,
                ]
            )
            return True
        return self._write("replace_encounter", work, {"kind": kind, "record_id": record_id})

    def get_encounter(self, kind: str, record_id: str) -> Result[Optional[dict]]:
        def work(cursor):
            row = cursor.execute(
                f"SELECT {ENCOUNTER_COLUMNS} FROM encounters WHERE record_id = ? AND kind = ?",
                [record_id, kind]
            ).fetchone()
            return _encounter_row(row) if row else None
        return self._read("get_encounter", work, {"kind": kind, "record_id": record_id})

    def list_encounters(self, query: EncounterQuery) -> Result[list[dict]]:
        def work(cursor):
            clauses = ["kind = ?"]
            params: list[Any] = [query.kind]
            if query.name_contains:
                clauses.append("patient_name ILIKE ? ESCAPE '\\'")
                params.append(contains_pattern(query.name_contains))
            if query.category:
                clauses.append("category = ?")
                params.append(query.category)
            if query.doctor_contains:
                clauses.append("doctor ILIKE ? ESCAPE '\\'")
                params.append(contains_pattern(query.doctor_contains))
            if query.urgency:
                clauses.append("urgency = ?")
                params.append(query.urgency)
            if query.event_from:
                clauses.append("event_date >= ?")
                params.append(query.event_from)
            if query.event_to:
                clauses.append("event_date <= ?")
                params.append(query.event_to)
            if query.created_from:
                clauses.append("created_at >= ?")
                params.append(query.created_from)
            if query.created_to:
                clauses.append("created_at < ?")
                params.append(query.created_to)
            params.extend([query.limit, query.offset])
            rows = cursor.execute(
                f"SELECT {ENCOUNTER_COLUMNS} FROM encounters WHERE {' AND '.join(clauses)} "
                "ORDER BY created_at DESC, record_id LIMIT ? OFFSET ?",
                params
            ).fetchall()
            return [_encounter_row(row) for row in rows]
        return self._read("list_encounters", work, {"kind": query.kind})

    def delete_encounter(self, kind: str, record_id: str) -> Result[bool]:
        def work(cursor):
            exists = cursor.execute(
                "SELECT 1 FROM encounters WHERE record_id = ? AND kind = ?", [record_id, kind]
            ).fetchone()
            if not exists:
                return False
            cursor.execute("DELETE FROM encounters WHERE record_id = ? AND kind = ?", [record_id, kind])
            return True
        return self._write("delete_encounter", work, {"kind": kind, "record_id": record_id})

    def count_encounters(self, kind: str, group_by: str) -> Result[list[tuple]]:
        if group_by not in ENCOUNTER_GROUP_COLUMNS:
            raise ValueError(f"Cannot group encounters by {group_by!r}")

        def work(cursor):
            rows = cursor.execute(
                f"SELECT {group_by}, count(*) AS n FROM encounters WHERE kind = ? "
                f"GROUP BY {group_by} ORDER BY n DESC, {group_by} NULLS LAST",
                [kind]
            ).fetchall()
            return [(row[0], int(row[1])) for row in rows]
        return self._read("count_encounters", work, {"kind": kind, "group_by": group_by})

    def close(self) -> None:
        """Close storage connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                self._connection = None
                logger.info("Closed DuckDB connection")
            except Exception as e:
                logger.warning(f"Error closing connection: {str(e)}")
