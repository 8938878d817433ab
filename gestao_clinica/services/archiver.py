import logging
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from gestao_clinica.data.compression import compress, decompress
from gestao_clinica.data.kv_store import ARCHIVE_PREFIX
from gestao_clinica.errors import StorageError
from gestao_clinica.models.base import parse_ts, utc_now
from gestao_clinica.models.errors import ErrorSeverity, ErrorType
from gestao_clinica.models.results import (
    ArchiveResult, ArchiveSettings, QuotaSettings, QuotaStatus, StorageStats,
)

logger = logging.getLogger("Archiver")

ARCHIVED_AT = "archived_at"


class Archiver:
    """
    Move registros frios (sincronizados, não deletados e antigos) da coleção
    ativa para um blob comprimido por coleção, de forma reversível.
    """

    SETTINGS_KEY = "archive_settings"

    def __init__(self, store, kv, ledger, clock: Callable = utc_now):
        self.store = store
        self.kv = kv
        self.ledger = ledger
        self.clock = clock

    # --- Configurações ---

    def get_archive_settings(self) -> ArchiveSettings:
        try:
            raw = self.kv.get_item(self.SETTINGS_KEY)
            return ArchiveSettings.model_validate_json(raw) if raw else ArchiveSettings()
        except (StorageError, ValueError) as e:
            self.ledger.handle_error(
                e, ErrorType.STORAGE, ErrorSeverity.WARNING, {"method": "get_archive_settings"}
            )
            return ArchiveSettings()

    def update_archive_settings(self, **changes) -> ArchiveSettings:
        current = self.get_archive_settings().model_dump()
        current.update(changes)
        settings = ArchiveSettings.model_validate(current)
        self.kv.set_item(self.SETTINGS_KEY, settings.model_dump_json())
        return settings

    # --- Blob de arquivo ---

    def _load_archive(self, key: str) -> List[Dict]:
        raw = self.kv.get_item(ARCHIVE_PREFIX + key)
        return decompress(raw) if raw else []

    def _save_archive(self, key: str, items: List[Dict]):
        self.kv.set_item(ARCHIVE_PREFIX + key, compress(items))

    def get_archived_items(self, key: str) -> List[Dict]:
        try:
            return self._load_archive(key)
        except StorageError as e:
            self.ledger.handle_error(
                e, ErrorType.STORAGE, ErrorSeverity.ERROR, {"method": "get_archived_items", "key": key}
            )
            return []

    def archive_count(self, key: str) -> int:
        return len(self.get_archived_items(key))

    # --- Arquivamento ---

    def _is_eligible(self, item: Dict, cutoff) -> bool:
        # Só arquiva o que já foi sincronizado e não está deletado
        if not item.get("is_synced") or item.get("is_deleted"):
            return False
        timestamp = item.get("updated_at") or item.get("created_at")
        if not timestamp:
            return False
        try:
            return parse_ts(timestamp) < cutoff
        except (ValueError, TypeError, AttributeError):
            # Data ilegível: o registro fica na coleção ativa
            logger.warning("Registro %s sem data válida (%r), não arquivado", item.get("id"), timestamp)
            return False

    def run_archiving(self, settings: Optional[ArchiveSettings] = None) -> ArchiveResult:
        settings = settings or self.get_archive_settings()
        result = ArchiveResult()
        if not settings.enabled:
            return result

        cutoff = self.clock() - timedelta(days=settings.older_than_days)
        try:
            for key in settings.include_types:
                candidates = [i for i in self.store.get_all(key) if self._is_eligible(i, cutoff)]
                if not candidates:
                    continue
                result.evicted += self._move(key, candidates, settings.max_archived_items)
                result.archived += len(candidates)
        except (StorageError, TypeError, AttributeError) as e:
            self.ledger.handle_error(
                e, ErrorType.STORAGE, ErrorSeverity.ERROR, {"method": "run_archiving"}
            )
            result.success = False

        logger.info("Arquivamento: %d movidos, %d descartados", result.archived, result.evicted)
        return result

    def _move(self, key: str, items: List[Dict], max_items: int) -> int:
        """
        Grava o arquivo primeiro e só então remove da coleção ativa; se a
        remoção falhar, o blob anterior é restaurado. Retorna quantos itens
        antigos foram descartados pelo limite.
        """
        previous_blob = self.kv.get_item(ARCHIVE_PREFIX + key)
        archived = decompress(previous_blob) if previous_blob else []

        archived_at = self.clock().isoformat()
        archived.extend({**item, ARCHIVED_AT: archived_at} for item in items)

        # Limite do arquivo: descarta os arquivados há mais tempo
        evicted = max(0, len(archived) - max_items)
        self._save_archive(key, archived[evicted:])

        try:
            self.store.remove_many(key, [item["id"] for item in items])
        except StorageError:
            if previous_blob is None:
                self.kv.remove_item(ARCHIVE_PREFIX + key)
            else:
                self.kv.set_item(ARCHIVE_PREFIX + key, previous_blob)
            raise

        if evicted:
            logger.warning("Arquivo %s excedeu %d itens: %d descartados", key, max_items, evicted)
        return evicted

    def restore_archived_item(self, key: str, item_id: str) -> bool:
        try:
            archived = self._load_archive(key)
            match = next((item for item in archived if item.get("id") == item_id), None)
            if match is None:
                return False

            restored = {k: v for k, v in match.items() if k != ARCHIVED_AT}
            self.store.put(key, restored)
            try:
                self._save_archive(key, [item for item in archived if item.get("id") != item_id])
            except StorageError:
                self.store.purge(key, item_id)
                raise
            return True
        except StorageError as e:
            self.ledger.handle_error(
                e, ErrorType.STORAGE, ErrorSeverity.ERROR,
                {"method": "restore_archived_item", "key": key, "id": item_id},
            )
            return False

    # --- Estatísticas ---

    def storage_stats(self) -> Dict[str, StorageStats]:
        keys = set(self.store.collections())
        keys.update(k[len(ARCHIVE_PREFIX):] for k in self.kv.keys(ARCHIVE_PREFIX))

        stats = {}
        for key in sorted(keys):
            items = self.store.get_all(key)
            stats[key] = StorageStats(
                count=len(items),
                active_count=sum(1 for i in items if not i.get("is_deleted")),
                deleted_count=sum(1 for i in items if i.get("is_deleted")),
                synced_count=sum(1 for i in items if i.get("is_synced")),
                unsynced_count=sum(1 for i in items if not i.get("is_synced")),
                archived_count=self.archive_count(key),
            )
        return stats

    def check_storage_quota(self, quota: Optional[QuotaSettings] = None) -> QuotaStatus:
        """
        Compara a ocupação local com os limites: uma coleção acima de
        max_items_per_type, ou o total acima do limiar de aviso, pede limpeza
        (arquivamento). Falha ao ler as estatísticas não bloqueia nada.
        """
        quota = quota or QuotaSettings()
        try:
            stats = self.storage_stats()
        except StorageError as e:
            self.ledger.handle_error(
                e, ErrorType.STORAGE, ErrorSeverity.WARNING, {"method": "check_storage_quota"}
            )
            return QuotaStatus()

        status = QuotaStatus()
        for key, usage in stats.items():
            if usage.count > quota.max_items_per_type:
                logger.warning("Coleção %s acima do limite: %d itens", key, usage.count)
                status.needs_cleanup = status.warning = True

        usage_ratio = sum(s.count for s in stats.values()) / quota.max_items_per_type
        if usage_ratio >= quota.critical_threshold:
            status.needs_cleanup = status.critical = True
        elif usage_ratio >= quota.warning_threshold:
            status.needs_cleanup = status.warning = True
        return status
