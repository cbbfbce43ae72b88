from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field

from drumforge.core.timeutil import utcnow


class GenerationStatus(str, Enum):
    pending = "pending"
    generating = "generating"
    completed = "completed"
    # Reserved; provider failures resolve to a demo track instead
    failed = "failed"


class DrumGeneration(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    # None for anonymous requests
    user_id: Optional[str] = Field(default=None, index=True)
    prompt: str
    bpm: Optional[int] = Field(default=None, ge=60, le=220)
    audio_url: Optional[str] = Field(default=None)
    status: GenerationStatus = Field(default=GenerationStatus.pending)
    created_at: datetime = Field(default_factory=utcnow, index=True)


class GenerationPublic(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    user_id: Optional[str] = None
    prompt: str
    bpm: Optional[int] = None
    audio_url: Optional[str] = None
    status: GenerationStatus
    created_at: datetime
