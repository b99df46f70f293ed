"""Social-history endpoints.

Each of the thirteen topics (tobacco smoking, alcohol, stress, ...) is its
own independently written section, addressed by the wizard's URL slug.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body

from src.api.dependencies import QueryServiceDep, SectionServiceDep
from src.api.models.envelope import Envelope, ok
from src.domain.ports import ValidationError
from src.domain.sections import SectionSpec, social_history_sections, social_history_topic

router = APIRouter(prefix="/api", tags=["social-history"])


def resolve_topic(topic: str) -> SectionSpec:
    """Map a topic slug ("alcohol") or topic name ("alcohol_use") to its section.

    Raises:
        ValidationError: If the topic is unknown
    """
    spec = social_history_topic(topic)
    if spec is None:
        known = ", ".join(s.slug for s in social_history_sections())
        raise ValidationError(f"Unknown social-history topic {topic!r}; expected one of: {known}", fields=["topic"])
    return spec


@router.get("/social-history/{patient_id}", response_model=Envelope)
def get_social_history(patient_id: str, query: QueryServiceDep) -> Envelope:
    """Fetch every topic at once; {} for topics never written or deleted."""
    return ok(query.get_social_history(patient_id))


@router.api_route("/social-history/{patient_id}/{topic}", methods=["POST", "PUT"], response_model=Envelope)
def write_topic(
    patient_id: str,
    topic: str,
    payload: Annotated[Any, Body()],
    sections: SectionServiceDep,
) -> Envelope:
    """Replace one social-history topic."""
    spec = resolve_topic(topic)
    value = sections.upsert_section(patient_id, spec.key, payload)
    return ok(value, f"Social history ({spec.slug}) saved")


@router.get("/social-history/{patient_id}/{topic}", response_model=Envelope)
def get_topic(patient_id: str, topic: str, query: QueryServiceDep) -> Envelope:
    spec = resolve_topic(topic)
    return ok(query.get_section(patient_id, spec.key))


@router.delete("/social-history/{patient_id}/{topic}", response_model=Envelope)
def delete_topic(patient_id: str, topic: str, sections: SectionServiceDep) -> Envelope:
    spec = resolve_topic(topic)
    sections.delete_section(patient_id, spec.key)
    return ok(message=f"Social history ({spec.slug}) deleted")
