import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ..core.auth import Identity, get_current_identity, get_optional_identity
from ..core.database import get_session
from ..models.generation import GenerationPublic
from ..services.audio_provider import DrumProviderClient
from ..services.billing.usage import admit_generation
from ..services.generations import (
    GenerateRequest,
    create_generation,
    finalize_generation,
    get_generation,
    recent_generations,
    user_generations,
)

log = logging.getLogger(__name__)

router = APIRouter(tags=["Generation"])


def get_provider() -> DrumProviderClient:
    return DrumProviderClient.from_settings()


def _page_limit(raw: Optional[str], default: int, maximum: int) -> int:
    """Missing, non-numeric or non-positive limits use the default; large ones are capped."""
    try:
        value = int(raw) if raw is not None else 0
    except ValueError:
        value = 0
    if value < 1:
        return default
    return min(value, maximum)


@router.post("/generate", response_model=GenerationPublic)
def generate_drums(
    req: GenerateRequest,
    session: Session = Depends(get_session),
    identity: Optional[Identity] = Depends(get_optional_identity),
    provider: DrumProviderClient = Depends(get_provider),
):
    """Generate a drum track. Signed-in callers are metered; anonymous ones are not."""
    user_id = identity.user_id if identity else None
    if user_id:
        entitlement = admit_generation(session, user_id)
        if not entitlement.allowed:
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"error": entitlement.reason, "upgradeRequired": True, "remaining": 0},
            )

    record = create_generation(session, user_id, req)
    record = finalize_generation(session, record, provider)
    return GenerationPublic.model_validate(record)


@router.get("/history", response_model=List[GenerationPublic])
def generation_history(
    limit: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    return [GenerationPublic.model_validate(r) for r in recent_generations(session, limit=_page_limit(limit, 10, 100))]


@router.get("/my-generations", response_model=List[GenerationPublic])
def my_generations(
    limit: Optional[str] = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    return [GenerationPublic.model_validate(r) for r in user_generations(session, identity.user_id, limit=_page_limit(limit, 50, 200))]


@router.get("/generation/{generation_id}", response_model=GenerationPublic)
def get_generation_by_id(generation_id: str, session: Session = Depends(get_session)):
    try:
        parsed = UUID(generation_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Generation not found")
    record = get_generation(session, parsed)
    if record is None:
        raise HTTPException(status_code=404, detail="Generation not found")
    return GenerationPublic.model_validate(record)
