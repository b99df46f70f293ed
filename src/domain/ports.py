"""Domain Ports - Abstract Contracts for Patient Record Storage.

This module defines the Port interface (abstract contract) that storage
adapters must implement, the Result type used to report storage outcomes,
and the error taxonomy shared by the services and the HTTP boundary.

Security Impact:
    - Services validate payloads fully before any port method is called,
      so adapters only ever receive schema-valid documents
    - Errors carry a stable machine-checkable kind; stack traces never
      need to reach a caller to explain a failure

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (DuckDB, PostgreSQL) implement StoragePort
    - Each section write is a single path-scoped statement at the storage
      layer: the patient aggregate is never rewritten as a whole
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Storage adapters return Result objects; services unwrap them and turn
    failures into StorageError.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (StorageError, etc.)
        error_details: Additional error context (operation, identifiers)

    Example:
        ```python
        result = storage.get_patient(patient_id)
        if result.is_success():
            row = result.value
        else:
            logger.error(result.error, extra={"details": result.error_details})
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError")
            error_details: Additional context (operation, identifiers)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")
        details = error_details
        if details is None and isinstance(error, EMRError):
            details = error.details

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success

    def unwrap(self, operation: Optional[str] = None) -> T:
        """Return the value of a successful result.

        Raises:
            StorageError: If the result is a failure
        """
        if self.success:
            return self.value
        raise StorageError(
            self.error or "Storage operation failed",
            operation=operation,
            details=self.error_details,
        )


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class EMRError(Exception):
    """Base exception for all intake record errors.

    Attributes:
        kind: Stable machine-checkable error kind reported to callers
        message: Human-readable message
        details: Additional error context
    """

    kind = "EMRError"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(EMRError):
    """Raised when a payload fails a field rule or misses a required field.

    Attributes:
        fields: Dotted names of the offending fields
    """

    kind = "ValidationError"

    def __init__(self, message: str, fields: Optional[list[str]] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.fields = fields or []

    @classmethod
    def from_pydantic(
        cls, exc: Any, prefix: Optional[str] = None, unwrap: Optional[str] = None
    ) -> 'ValidationError':
        """Build a ValidationError from a pydantic ValidationError.

        Parameters:
            exc: pydantic.ValidationError raised by model_validate
            prefix: Optional path prepended to every field name
            unwrap: Leading location part to drop, the wrapper field of a
                model that accepts a bare list

        Returns:
            ValidationError: With one field name per pydantic error location
        """
        fields = []
        reasons = {}
        for error in exc.errors():
            location = [str(part) for part in error.get("loc", ())]
            if unwrap and location[:1] == [unwrap]:
                location = location[1:]
            if prefix:
                location.insert(0, prefix)
            name = ".".join(location) or (prefix or "payload")
            if name not in reasons:
                fields.append(name)
                reasons[name] = error.get("msg", "invalid value")
        summary = "; ".join(f"{name}: {reasons[name]}" for name in fields)
        return cls(f"Validation failed: {summary}", fields=fields, details={"reasons": reasons})


class NotFoundError(EMRError):
    """Raised when an identifier does not resolve to a stored record.

    Attributes:
        resource: What was looked up (patient, attachment, visit, ...)
        identifier: The identifier that did not resolve
    """

    kind = "NotFound"

    def __init__(self, message: str, resource: Optional[str] = None, identifier: Optional[str] = None):
        super().__init__(message, {"resource": resource, "identifier": identifier})
        self.resource = resource
        self.identifier = identifier


class InvalidIdentifierError(EMRError):
    """Raised when an identifier is syntactically malformed (distinct from NotFound)."""

    kind = "InvalidIdentifier"

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message, {"identifier": identifier})
        self.identifier = identifier


class AttachmentError(EMRError):
    """Raised when an upload cannot be stored or fetched.

    Attributes:
        reason: One of "unsupported_type", "too_large", "empty", "storage"
    """

    kind = "AttachmentError"

    def __init__(self, message: str, reason: str = "storage", details: Optional[dict] = None):
        super().__init__(message, details)
        self.reason = reason


class ConflictError(EMRError):
    """Reserved for optimistic-concurrency checks.

    Same-section writers currently race with last-write-wins semantics,
    so nothing raises this yet.
    """

    kind = "ConflictError"


class StorageError(EMRError):
    """Raised when the datastore itself fails.

    Attributes:
        operation: The storage operation that failed
        details: Additional error details
    """

    kind = "StorageError"

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.operation = operation


# ============================================================================
# Storage value and query objects
# ============================================================================

@dataclass(frozen=True)
class Attachment:
    """Attachment bytes under their content-addressed reference."""
    reference: str
    content: bytes
    content_type: str
    filename: Optional[str] = None


LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching text literally anywhere in a column.

    Used with ESCAPE '\\' so that user-supplied % and _ match themselves.
    """
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


ENCOUNTER_GROUP_COLUMNS = ("category", "doctor", "urgency")


@dataclass(frozen=True)
class EncounterQuery:
    """Filters for listing Visit or Appointment records.

    Attributes:
        kind: "visit" or "appointment"
        name_contains: Case-insensitive substring of the patient name
        category: Exact visit type / appointment type
        doctor_contains: Case-insensitive substring of the doctor (appointments)
        urgency: Exact urgency literal (appointments)
        event_from: Inclusive lower bound on the scheduled date
        event_to: Inclusive upper bound on the scheduled date
        created_from: Inclusive lower bound on creation time
        created_to: Exclusive upper bound on creation time
        limit: Maximum number of rows
        offset: Rows to skip
    """
    kind: str
    name_contains: Optional[str] = None
    category: Optional[str] = None
    doctor_contains: Optional[str] = None
    urgency: Optional[str] = None
    event_from: Optional[date] = None
    event_to: Optional[date] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    limit: int = 100
    offset: int = 0


# ============================================================================
# Storage Port
# ============================================================================

class StoragePort(ABC):
    """Abstract contract for patient record persistence.

    Rows are plain dictionaries. JSON documents go in and come out as
    Python dicts/lists; adapters own the (de)serialization.

    Patient rows: patient_id, demographics, photo_reference, created_at, updated_at
    Section rows: section_key, payload, state, attachment_reference, updated_at
    Attachment rows: reference, content, content_type, filename, size_bytes, created_at
    Encounter rows: record_id, kind, document, created_at, updated_at

    Concurrency:
        - write_section is one atomic statement scoped to (patient_id, section_key)
          and guarded by the existence of the patient row
        - Writers to distinct sections never conflict; writers to the same
          section are last-write-wins
        - Attachment bytes are written in the same transaction as the row
          that references them, and release_attachment deletes only when no
          committed row references the bytes, in one statement
    """

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create tables and indexes if they do not exist."""

    @abstractmethod
    def ping(self) -> Result[float]:
        """Run a trivial query; returns elapsed milliseconds."""

    # -- patients -----------------------------------------------------------

    @abstractmethod
    def insert_patient(
        self,
        patient_id: str,
        demographics: dict,
        photo_reference: Optional[str],
        scaffolds: dict[str, Any],
        attachment: Optional[Attachment] = None
    ) -> Result[str]:
        """Insert the patient row, its scaffold section rows and the photo bytes in one transaction."""

    @abstractmethod
    def get_patient(self, patient_id: str) -> Result[Optional[dict]]:
        """Fetch one patient row, or None if absent."""

    @abstractmethod
    def update_patient(
        self,
        patient_id: str,
        demographics: dict,
        photo_reference: Optional[str],
        attachment: Optional[Attachment] = None
    ) -> Result[bool]:
        """Replace demographics and photo reference, storing new photo bytes in the same
        transaction; False if the patient is absent (nothing written)."""

    @abstractmethod
    def delete_patient(self, patient_id: str) -> Result[bool]:
        """Delete the patient row and all its section rows; False if absent."""

    @abstractmethod
    def list_patients(
        self,
        limit: int = 100,
        offset: int = 0,
        name_contains: Optional[str] = None
    ) -> Result[list[dict]]:
        """List patient rows newest first, each with its contact_info payload."""

    # -- sections -----------------------------------------------------------

    @abstractmethod
    def write_section(
        self,
        patient_id: str,
        section_key: str,
        payload: Any,
        state: str,
        attachment_reference: Optional[str] = None,
        attachment: Optional[Attachment] = None
    ) -> Result[bool]:
        """Upsert one section row (and its attachment bytes); False if the patient does not exist."""

    @abstractmethod
    def get_section(self, patient_id: str, section_key: str) -> Result[Optional[dict]]:
        """Fetch one section row, or None if never written or deleted."""

    @abstractmethod
    def get_sections(self, patient_id: str) -> Result[list[dict]]:
        """Fetch every section row of a patient."""

    @abstractmethod
    def delete_section(self, patient_id: str, section_key: str) -> Result[bool]:
        """Delete one section row; False if it did not exist."""

    # -- attachments --------------------------------------------------------

    @abstractmethod
    def get_attachment(self, reference: str) -> Result[Optional[dict]]:
        """Fetch an attachment row, or None if absent."""

    @abstractmethod
    def release_attachment(self, reference: str) -> Result[bool]:
        """Delete attachment bytes unless a patient photo or section still references them.

        Returns:
            Result[bool]: True if the bytes were removed
        """

    # -- visits and appointments -------------------------------------------

    @abstractmethod
    def insert_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[str]:
        """Insert a Visit/Appointment document with its filter columns."""

    @abstractmethod
    def replace_encounter(self, kind: str, record_id: str, document: dict, index: dict) -> Result[bool]:
        """Replace a document; False if absent."""

    @abstractmethod
    def get_encounter(self, kind: str, record_id: str) -> Result[Optional[dict]]:
        """Fetch one encounter row, or None if absent."""

    @abstractmethod
    def list_encounters(self, query: EncounterQuery) -> Result[list[dict]]:
        """List encounter rows matching the query, newest first."""

    @abstractmethod
    def delete_encounter(self, kind: str, record_id: str) -> Result[bool]:
        """Delete one encounter row; False if absent."""

    @abstractmethod
    def count_encounters(self, kind: str, group_by: str) -> Result[list[tuple]]:
        """Count encounters of a kind per value of one filter column.

        Parameters:
            kind: "visit" or "appointment"
            group_by: One of ENCOUNTER_GROUP_COLUMNS

        Returns:
            Result[list[tuple]]: (value, count) pairs, largest count first
        """

    @abstractmethod
    def close(self) -> None:
        """Release connections and pools."""
