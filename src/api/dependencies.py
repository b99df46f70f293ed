"""Dependency injection for the intake API.

The storage adapter is created once at application start (see
src.api.main) and kept on app.state; services are cheap and built per
request on top of it.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from src.domain.ports import StorageError, StoragePort
from src.domain.services import (
    AggregateQueryService,
    AppointmentService,
    AttachmentStore,
    IdentityLifecycleManager,
    SectionUpdateService,
    VisitService,
)
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def get_storage_adapter(request: Request) -> StoragePort:
    """Get the application's storage adapter.

    Raises:
        StorageError: If the application was started without storage
    """
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise StorageError("Storage is not initialized", operation="get_storage_adapter")
    return storage


# Type alias for dependency injection
StorageDep = Annotated[StoragePort, Depends(get_storage_adapter)]


def get_attachment_store(storage: StorageDep) -> AttachmentStore:
    return AttachmentStore(
        storage,
        max_bytes=settings.max_upload_bytes,
        allowed_types=settings.allowed_image_types,
    )


AttachmentStoreDep = Annotated[AttachmentStore, Depends(get_attachment_store)]


def get_identity_manager(storage: StorageDep, attachments: AttachmentStoreDep) -> IdentityLifecycleManager:
    return IdentityLifecycleManager(storage, attachments)


IdentityDep = Annotated[IdentityLifecycleManager, Depends(get_identity_manager)]


def get_section_service(
    storage: StorageDep,
    identity: IdentityDep,
    attachments: AttachmentStoreDep
) -> SectionUpdateService:
    return SectionUpdateService(storage, identity, attachments)


SectionServiceDep = Annotated[SectionUpdateService, Depends(get_section_service)]


def get_query_service(storage: StorageDep, identity: IdentityDep) -> AggregateQueryService:
    return AggregateQueryService(storage, identity)


QueryServiceDep = Annotated[AggregateQueryService, Depends(get_query_service)]


def get_visit_service(storage: StorageDep) -> VisitService:
    return VisitService(storage)


VisitServiceDep = Annotated[VisitService, Depends(get_visit_service)]


def get_appointment_service(storage: StorageDep) -> AppointmentService:
    return AppointmentService(storage)


AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
