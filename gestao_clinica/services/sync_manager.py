import logging
from typing import Dict, Iterable, List, Optional

import httpx

from gestao_clinica.errors import StorageError
from gestao_clinica.models.base import CollectionKey, SyncState, utc_now
from gestao_clinica.models.errors import AppError, ErrorSeverity, ErrorType
from gestao_clinica.models.results import SyncResult, SyncStatus
from gestao_clinica.services.conflicts import content_of, remote_wins, same_content

logger = logging.getLogger("SyncManager")

# A ordem importa quando há referências (Pai antes de Filho):
# pacientes antes de consultas e prontuários (que têm patient_id)
DEFAULT_COLLECTIONS = (
    CollectionKey.PATIENTS,
    CollectionKey.HEALTH_WORKERS,
    CollectionKey.APPOINTMENTS,
    CollectionKey.VISITS,
    CollectionKey.MEDICAL_RECORDS,
)


class SyncManager:
    """
    Coordena push das mutações locais e pull das mudanças remotas.

    Estados por registro: LOCAL_ONLY -> PENDING_SYNC -> SYNCED, e
    PENDING_SYNC -> CONFLICT -> SYNCED quando as versões divergem.
    Sem timers: cada sync é uma chamada explícita que devolve um SyncResult.
    """

    def __init__(self, store, remote, network, ledger, kv,
                 collections: Iterable[CollectionKey] = DEFAULT_COLLECTIONS):
        self.store = store
        self.remote = remote
        self.network = network
        self.ledger = ledger
        self.kv = kv
        self.collections = list(collections)

        self._syncing = False
        self._last_sync_time: Optional[str] = None
        self._last_error: Optional[str] = None

        self.ledger.set_retry_handler(self._retry)

    # --- API pública ---

    def mark_pending(self, key: str, item_id: str) -> bool:
        """Sinaliza uma mutação local que precisa ir para o servidor"""
        return self.store.set_sync_state(key, item_id, SyncState.PENDING_SYNC)

    def perform_sync(self, collections: Optional[Iterable[CollectionKey]] = None) -> SyncResult:
        if self._syncing:
            return SyncResult(status=SyncStatus.BUSY, errors=["Sync já em andamento"])

        self._syncing = True
        try:
            return self._run(list(collections or self.collections))
        finally:
            self._syncing = False

    def sync_state(self) -> Dict:
        pending = 0
        try:
            pending = sum(len(self.store.pending(key)) for key in self.collections)
        except StorageError as e:
            logger.warning("Não foi possível contar pendências: %s", e)
        return {
            "is_syncing": self._syncing,
            "last_sync_time": self._last_sync_time,
            "last_error": self._last_error,
            "pending_items": pending,
        }

    def on_network_change(self, is_connected: bool):
        """Assinante do NetworkMonitor; notificações repetidas são inofensivas"""
        if is_connected and not self._syncing:
            self.ledger.retry_pending()

    # --- Execução ---

    def _run(self, collections: List[CollectionKey]) -> SyncResult:
        # O status anterior é só consultivo: sempre checa de novo
        if not self.network.is_connected():
            message = "Sem conexão de rede disponível"
            self.ledger.handle_error(
                message, ErrorType.NETWORK, ErrorSeverity.WARNING,
                {"method": "perform_sync"}, retryable=True,
            )
            self._last_error = message
            return SyncResult(status=SyncStatus.OFFLINE, errors=[message])

        report = SyncResult()
        try:
            # 1. PUSH
            for key in collections:
                self._push_collection(key, report)

            # 2. PULL (cursor por recurso)
            for key in collections:
                self._pull_collection(key, report)

        except (httpx.ConnectError, httpx.TimeoutException) as e:
            self._fail(report, SyncStatus.OFFLINE, e, ErrorType.NETWORK, retryable=True)
        except httpx.HTTPError as e:
            self._fail(report, SyncStatus.ERROR, e, ErrorType.SYNC, retryable=True)
        except StorageError as e:
            self._fail(report, SyncStatus.ERROR, e, ErrorType.STORAGE, retryable=False)
        except ValueError as e:
            # Resposta que não é o JSON esperado (ex: portal de login do Wi-Fi)
            self._fail(report, SyncStatus.ERROR, e, ErrorType.SYNC, retryable=True)
        except Exception as e:
            logger.exception("Falha inesperada no sync")
            self._fail(report, SyncStatus.ERROR, e, ErrorType.UNKNOWN, retryable=False)

        if report.ok:
            if report.failed:
                report.status = SyncStatus.PARTIAL
            self._last_sync_time = utc_now().isoformat()
            self._last_error = None

        logger.info(
            "Sync %s: ▲%d ▼%d conflitos=%d removidos=%d",
            report.status.value, report.pushed, report.pulled, report.conflicts, report.purged,
        )
        return report

    def _fail(self, report: SyncResult, status: SyncStatus, error: Exception,
              error_type: ErrorType, retryable: bool):
        report.status = status
        report.errors.append(str(error))
        self._last_error = str(error)
        self.ledger.handle_error(
            error, error_type, ErrorSeverity.ERROR,
            {"method": "perform_sync", "exception": error.__class__.__name__},
            retryable=retryable,
        )

    def _retry(self, app_error: AppError) -> bool:
        logger.info("Retry do erro %s via sync completo", app_error.id)
        return self.perform_sync().ok

    # --- Push ---

    def _push_collection(self, key: CollectionKey, report: SyncResult):
        pending = self.store.pending(key)
        if not pending:
            return

        # LOCAL_ONLY -> PENDING_SYNC antes de enviar
        for item in pending:
            item["sync_state"] = SyncState.PENDING_SYNC.value
        self.store.put_many(key, pending)

        result = self.remote.push(key.resource, [content_of(i) for i in pending])
        accepted = set(result["processed_ids"])
        by_id = {item["id"]: item for item in pending}

        for item in pending:
            if item["id"] not in accepted:
                continue
            report.pushed += 1
            if item.get("is_deleted"):
                # Exclusão confirmada no servidor: agora pode sair de vez
                self.store.purge(key, item["id"])
                report.purged += 1
            else:
                self.store.set_sync_state(key, item["id"], SyncState.SYNCED)

        for server_copy in result["conflicts"]:
            local = by_id.get(server_copy.get("id"))
            if local is None:
                continue
            report.conflicts += 1
            self.store.set_sync_state(key, local["id"], SyncState.CONFLICT)
            if remote_wins(local, server_copy):
                self._accept_remote(key, server_copy, report)
            else:
                # Servidor recusou uma versão mais nova: tenta no próximo sync
                self.store.set_sync_state(key, local["id"], SyncState.PENDING_SYNC)
                report.failed += 1

        rejected = set(by_id) - accepted - {c.get("id") for c in result["conflicts"]}
        report.failed += len(rejected)

    # --- Pull ---

    def _pull_collection(self, key: CollectionKey, report: SyncResult):
        since = self.kv.get_last_sync(key.resource)
        data = self.remote.pull(key.resource, since)

        for remote_item in data["changes"]:
            try:
                self._apply_remote(key, remote_item, report)
            except (ValueError, TypeError, AttributeError) as e:
                # Registro remoto malformado (ex: updated_at ilegível) não trava o resto
                report.failed += 1
                self.ledger.handle_error(
                    e, ErrorType.SYNC, ErrorSeverity.WARNING,
                    {"method": "pull", "resource": key.resource, "exception": e.__class__.__name__},
                )

        server_time = data.get("current_server_time")
        if data["changes"] and server_time and server_time != since:
            self.kv.set_last_sync(key.resource, server_time)

    def _apply_remote(self, key: CollectionKey, remote_item: Dict, report: SyncResult):
        if not remote_item.get("id"):
            return
        local = self.store.get_by_id(key, remote_item["id"], include_deleted=True)

        if local is None:
            if not remote_item.get("is_deleted"):
                self._store_synced(key, remote_item)
                report.pulled += 1
            return

        if same_content(local, remote_item):
            if local.get("sync_state") != SyncState.SYNCED.value:
                self.store.set_sync_state(key, local["id"], SyncState.SYNCED)
            return

        if not local.get("is_synced"):
            # Mudança local pendente divergindo da remota
            if not remote_wins(local, remote_item):
                return
            report.conflicts += 1
            self.store.set_sync_state(key, local["id"], SyncState.CONFLICT)

        self._accept_remote(key, remote_item, report)

    def _accept_remote(self, key: CollectionKey, remote_item: Dict, report: SyncResult):
        if remote_item.get("is_deleted"):
            if self.store.purge(key, remote_item["id"]):
                report.purged += 1
            return
        self._store_synced(key, remote_item)
        report.pulled += 1

    def _store_synced(self, key: CollectionKey, remote_item: Dict):
        item = content_of(remote_item)
        item["is_deleted"] = False
        item["is_synced"] = True
        item["sync_state"] = SyncState.SYNCED.value
        self.store.put(key, item)
