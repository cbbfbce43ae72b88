from __future__ import annotations

import logging
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from drumforge.core import crud
from drumforge.models.generation import DrumGeneration, GenerationStatus
from .audio_provider import DrumProviderClient, resolve_audio_url

log = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt: str = Field(min_length=1)
    bpm: Optional[int] = Field(default=None, ge=60, le=220)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value


def create_generation(session: Any, user_id: Optional[str], request: GenerateRequest) -> DrumGeneration:
    """Persist a new record in the generating state."""
    record = DrumGeneration(
        user_id=user_id,
        prompt=request.prompt,
        bpm=request.bpm,
        status=GenerationStatus.generating,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    log.info("event=generation.created id=%s user_id=%s", record.id, user_id)
    return record


def finalize_generation(session: Any, record: DrumGeneration, provider: DrumProviderClient) -> DrumGeneration:
    """Call the provider once and complete the record with whatever URL results."""
    outcome = provider.generate(record.prompt, record.bpm)
    record.audio_url = resolve_audio_url(outcome, record.prompt)
    record.status = GenerationStatus.completed
    session.add(record)
    session.commit()
    session.refresh(record)
    log.info(
        "event=generation.completed id=%s source=%s",
        record.id, type(outcome).__name__,
    )
    return record


def get_generation(session: Any, generation_id: UUID) -> Optional[DrumGeneration]:
    return crud.get_generation_by_id(session, generation_id)


def recent_generations(session: Any, limit: int = 10) -> List[DrumGeneration]:
    return crud.get_completed_generations(session, limit=limit)


def user_generations(session: Any, user_id: str, limit: int = 50) -> List[DrumGeneration]:
    return crud.get_generations_by_user(session, user_id, limit=limit)


__all__ = [
    "GenerateRequest",
    "create_generation",
    "finalize_generation",
    "get_generation",
    "recent_generations",
    "user_generations",
]
