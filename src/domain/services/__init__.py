"""Domain Services.

This package contains domain services that implement the intake record
protocols without infrastructure dependencies beyond StoragePort.
"""

from src.domain.services.attachment_store import Attachment, AttachmentStore, Upload
from src.domain.services.identity_manager import IdentityLifecycleManager, parse_identifier
from src.domain.services.section_update import SectionUpdateService
from src.domain.services.aggregate_query import AggregateQueryService
from src.domain.services.encounters import AppointmentService, VisitService

__all__ = [
    'Attachment',
    'AttachmentStore',
    'Upload',
    'IdentityLifecycleManager',
    'parse_identifier',
    'SectionUpdateService',
    'AggregateQueryService',
    'AppointmentService',
    'VisitService',
]
