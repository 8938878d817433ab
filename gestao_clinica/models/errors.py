import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict
from sqlmodel import Field, SQLModel
from .base import utc_now


class ErrorType(str, Enum):
    NETWORK = "NETWORK"         # Sem conectividade ou requisição falhou
    STORAGE = "STORAGE"         # Leitura/escrita/compressão local
    VALIDATION = "VALIDATION"   # Dados de entrada malformados
    SYNC = "SYNC"               # Conflito ou sync parcial
    AUTH = "AUTH"               # Credencial/sessão
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def aborts(self) -> bool:
        """ERROR/CRITICAL interrompem a operação em andamento."""
        return self in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


class AppError(SQLModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: ErrorType = ErrorType.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.ERROR
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    handled: bool = False
    retryable: bool = False
