"""
Configurações e resultados das operações de sync e arquivamento.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List
from pydantic import field_validator, model_validator
from sqlmodel import Field, SQLModel
from .base import CollectionKey


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    OFFLINE = "offline"
    ERROR = "error"
    BUSY = "busy"


@dataclass
class SyncResult:
    status: SyncStatus = SyncStatus.SUCCESS
    pushed: int = 0
    pulled: int = 0
    conflicts: int = 0
    purged: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.SUCCESS, SyncStatus.PARTIAL)


class ArchiveSettings(SQLModel):
    enabled: bool = True
    older_than_days: int = Field(default=90, ge=0)
    # Semântica de conjunto: duplicatas são removidas na validação
    include_types: List[CollectionKey] = Field(
        default_factory=lambda: [CollectionKey.APPOINTMENTS, CollectionKey.MEDICAL_RECORDS]
    )
    max_archived_items: int = Field(default=1000, gt=0)

    @field_validator("include_types")
    @classmethod
    def unique_types(cls, value: List[CollectionKey]) -> List[CollectionKey]:
        return list(dict.fromkeys(value))


@dataclass
class ArchiveResult:
    success: bool = True
    archived: int = 0
    evicted: int = 0


@dataclass
class StorageStats:
    count: int = 0
    active_count: int = 0
    deleted_count: int = 0
    synced_count: int = 0
    unsynced_count: int = 0
    archived_count: int = 0


class QuotaSettings(SQLModel):
    """Limites de ocupação local; os limiares são frações de max_items_per_type"""
    max_items_per_type: int = Field(default=10000, gt=0)
    warning_threshold: float = Field(default=0.8, gt=0, le=1)
    critical_threshold: float = Field(default=0.9, gt=0, le=1)

    @model_validator(mode="after")
    def warning_before_critical(self):
        if self.warning_threshold > self.critical_threshold:
            raise ValueError("warning_threshold não pode ser maior que critical_threshold")
        return self


@dataclass
class QuotaStatus:
    needs_cleanup: bool = False
    warning: bool = False
    critical: bool = False
