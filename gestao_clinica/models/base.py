import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Union
from sqlmodel import Field, SQLModel


# Função auxiliar para timestamps UTC
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_ts(value: Union[str, datetime]) -> datetime:
    """Converte ISO8601 (com 'Z', offset ou naive) em datetime UTC aware."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        # Timestamps sem fuso são sempre UTC neste sistema
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SyncState(str, Enum):
    LOCAL_ONLY = "LOCAL_ONLY"       # Criado localmente, nunca enviado
    PENDING_SYNC = "PENDING_SYNC"   # Mutação local aguardando push
    CONFLICT = "CONFLICT"           # Versões local e remota divergiram
    SYNCED = "SYNCED"


class CollectionKey(str, Enum):
    PATIENTS = "PATIENTS"
    APPOINTMENTS = "APPOINTMENTS"
    MEDICAL_RECORDS = "MEDICAL_RECORDS"
    VISITS = "VISITS"
    HEALTH_WORKERS = "HEALTH_WORKERS"

    @property
    def resource(self) -> str:
        """Nome do recurso na URL do servidor (ex: /sync/push/medical_records)"""
        return self.value.lower()


# Campos de controle que não fazem parte do conteúdo do registro
LOCAL_FIELDS = ("is_synced", "sync_state", "archived_at")


class SyncModel(SQLModel):
    """
    Classe Base para todas as entidades sincronizáveis.
    Implementa UUID, Soft Delete e Metadados de Auditoria.
    """
    # Identificador UUID v4 (nunca autoincrement: registros nascem offline)
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Metadados de Auditoria
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Tombstone para Soft Delete
    is_deleted: bool = Field(default=False)

    # Status de Sincronização
    is_synced: bool = Field(default=False)
    sync_state: SyncState = Field(default=SyncState.LOCAL_ONLY)
