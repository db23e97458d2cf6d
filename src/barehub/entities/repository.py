"""Repository entity - the persisted record of a hosted bare repository."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RepositoryRecord(BaseModel):
    """Row describing one bare repository on disk.

    The filesystem is authoritative; a record is written only after the
    matching filesystem change has succeeded.
    """

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., pattern="^[A-Za-z0-9_-]+$", description="Repository name")
    path: str
    description: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Repository name cannot be empty")
        return v
