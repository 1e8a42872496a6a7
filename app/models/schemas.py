"""
Pydantic models for the file ledger.

Shared data models across the application.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


# =====================================================
# Event Models
# =====================================================

class ChangeKind(str, Enum):
    """Kind of filesystem change."""
    CREATED = "created"
    MODIFIED = "modified"
    OTHER = "other"


class ChangeEvent(BaseModel):
    """Raw change notification from the event source."""
    model_config = ConfigDict(frozen=True)

    path: str
    kind: ChangeKind

    @property
    def is_relevant(self) -> bool:
        return self.kind in (ChangeKind.CREATED, ChangeKind.MODIFIED)


# =====================================================
# Ledger Models
# =====================================================

class FileRecord(BaseModel):
    """Metadata persisted for one observed file change."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    size: int = Field(ge=0)
