import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from gestao_clinica.config import MAX_ERROR_LOG_SIZE
from gestao_clinica.data.compression import decompress
from gestao_clinica.data.kv_store import ARCHIVE_PREFIX, ITEMS_PREFIX
from gestao_clinica.errors import CompressionError, StorageError
from gestao_clinica.models.errors import AppError, ErrorSeverity, ErrorType

logger = logging.getLogger("ErrorLedger")

LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

RETRYABLE_TYPES = (ErrorType.NETWORK, ErrorType.SYNC)

# Recebe o erro pendente e devolve True se a nova tentativa deu certo
RetryHandler = Callable[[AppError], bool]


class ErrorLedger:
    """
    Log de erros em ring buffer (mais recente primeiro), persistido no KVStore.
    A única mutação além do append/evicção é marcar um erro como tratado.
    """

    ERROR_LOG_KEY = "error_log"

    def __init__(self, kv, network=None, max_size: int = MAX_ERROR_LOG_SIZE):
        self.kv = kv
        self.network = network
        self.max_size = max_size
        self._retry_handler: Optional[RetryHandler] = None

    def set_retry_handler(self, handler: RetryHandler):
        self._retry_handler = handler

    def handle_error(
        self,
        error: Union[Exception, str],
        type: ErrorType = ErrorType.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ) -> AppError:
        """Classifica, registra e trata o erro conforme o tipo"""
        if details is None and isinstance(error, Exception):
            details = {"exception": error.__class__.__name__}

        app_error = AppError(
            type=type,
            severity=severity,
            message=str(error),
            details=details or {},
            retryable=retryable,
        )

        logger.log(
            LOG_LEVELS[severity],
            "[%s][%s] %s %s", type.value, severity.value, app_error.message, app_error.details,
        )
        self._log_error(app_error)

        if type in RETRYABLE_TYPES and retryable:
            self._retry_now_if_online(app_error)
        elif type == ErrorType.STORAGE and severity == ErrorSeverity.CRITICAL:
            self.attempt_storage_recovery()

        return app_error

    # --- Persistência do log ---

    def _read(self) -> List[Dict]:
        raw = self.kv.get_item(self.ERROR_LOG_KEY)
        if not raw:
            return []
        return json.loads(raw)

    def _write(self, entries: List[Dict]):
        self.kv.set_item(self.ERROR_LOG_KEY, json.dumps(entries))

    def _log_error(self, app_error: AppError):
        try:
            entries = self._read()
            entries.insert(0, app_error.model_dump(mode="json"))
            # Limita o tamanho do log: descarta os mais antigos
            self._write(entries[: self.max_size])
        except (StorageError, ValueError) as e:
            # Se não conseguimos gravar o log, ao menos fica no logger
            logger.error("Falha ao registrar erro %s: %s", app_error.id, e)

    def get_errors(self) -> List[AppError]:
        try:
            return [AppError.model_validate(e) for e in self._read()]
        except (StorageError, ValueError) as e:
            logger.error("Falha ao ler log de erros: %s", e)
            return []

    def mark_error_as_handled(self, error_id: str) -> bool:
        try:
            entries = self._read()
            found = False
            for entry in entries:
                if entry["id"] == error_id:
                    entry["handled"] = True
                    found = True
            if found:
                self._write(entries)
            return found
        except (StorageError, ValueError) as e:
            logger.error("Falha ao marcar erro %s como tratado: %s", error_id, e)
            return False

    def clear_errors(self) -> bool:
        try:
            self.kv.remove_item(self.ERROR_LOG_KEY)
            return True
        except StorageError as e:
            logger.error("Falha ao limpar log de erros: %s", e)
            return False

    # --- Retry ---

    def pending_retries(self) -> List[AppError]:
        return [
            e for e in self.get_errors()
            if e.retryable and not e.handled and e.type in RETRYABLE_TYPES
        ]

    def _is_online(self) -> bool:
        return self.network is not None and self.network.is_connected()

    def _retry_now_if_online(self, app_error: AppError):
        if self._retry_handler is None:
            return
        if not self._is_online():
            # Fica pendente até o próximo gatilho explícito de sync
            logger.info("Erro %s será reprocessado quando a rede voltar", app_error.id)
            return
        logger.info("Reprocessando operação do erro %s", app_error.id)
        if self._retry_handler(app_error):
            self.mark_error_as_handled(app_error.id)

    def retry_pending(self) -> int:
        """
        Reprocessa os erros pendentes se houver rede. Uma única execução do
        handler cobre todos (um sync completo). Retorna quantos foram tratados.
        """
        pending = self.pending_retries()
        if not pending or self._retry_handler is None or not self._is_online():
            return 0
        if not self._retry_handler(pending[0]):
            return 0
        for app_error in pending:
            self.mark_error_as_handled(app_error.id)
        return len(pending)

    # --- Recuperação ---

    def attempt_storage_recovery(self) -> List[str]:
        """Remove chaves de coleção/arquivo que não podem mais ser lidas"""
        removed = []
        try:
            for key in self.kv.keys(ITEMS_PREFIX):
                try:
                    json.loads(self.kv.get_item(key) or "[]")
                except ValueError:
                    self.kv.remove_item(key)
                    removed.append(key)
            for key in self.kv.keys(ARCHIVE_PREFIX):
                try:
                    decompress(self.kv.get_item(key) or "")
                except CompressionError:
                    self.kv.remove_item(key)
                    removed.append(key)
        except StorageError as e:
            logger.error("Recuperação de armazenamento falhou: %s", e)
        if removed:
            logger.warning("Chaves corrompidas removidas: %s", removed)
        return removed
