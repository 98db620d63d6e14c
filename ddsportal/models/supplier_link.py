from datetime import datetime
from typing import List, Dict, Any
from sqlmodel import SQLModel, Field


class MigrationRecord(SQLModel):
    old_id: str
    new_id: str
    migrated_at: datetime


class MigrationReport(SQLModel):
    """Outcome of one ID migration batch. Failures are listed, never raised."""
    total: int = 0
    migrated: List[MigrationRecord] = Field(default_factory=list)
    failed: List[Dict[str, Any]] = Field(default_factory=list)


class IdValidationReport(SQLModel):
    total: int
    valid: int
    invalid: int
    invalid_ids: List[str] = Field(default_factory=list)
