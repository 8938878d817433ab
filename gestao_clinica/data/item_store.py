import copy
import json
import logging
from typing import Callable, Dict, Iterable, List, Optional

from gestao_clinica.data.kv_store import ITEMS_PREFIX
from gestao_clinica.errors import StorageError
from gestao_clinica.models.base import SyncState, utc_now

logger = logging.getLogger("LocalItemStore")


class LocalItemStore:
    """
    Coleções de registros offline (nome da coleção -> array JSON no KVStore).

    Único dono das coleções: sync e arquivamento só alteram dados pelos
    métodos abaixo. Não há validação de schema nesta camada; isso é
    responsabilidade dos repositórios.
    """

    def __init__(self, kv, clock: Callable = utc_now):
        self.kv = kv
        self.clock = clock

    # --- Persistência ---

    def _load(self, key: str) -> List[Dict]:
        raw = self.kv.get_item(ITEMS_PREFIX + key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Coleção '{key}' corrompida: {e}") from e
        if not isinstance(items, list):
            raise StorageError(f"Coleção '{key}' corrompida: esperado um array")
        return items

    def _save(self, key: str, items: List[Dict]):
        self.kv.set_item(ITEMS_PREFIX + key, json.dumps(items))

    @staticmethod
    def _index_of(items: List[Dict], item_id: str) -> int:
        for index, item in enumerate(items):
            if item.get("id") == item_id:
                return index
        return -1

    # --- Leitura ---

    def get(self, key: str) -> List[Dict]:
        """Registros ativos em ordem de inserção (tombstones filtrados)"""
        return [copy.deepcopy(i) for i in self._load(key) if not i.get("is_deleted")]

    def get_all(self, key: str) -> List[Dict]:
        """Todos os registros, inclusive os marcados como deletados"""
        return copy.deepcopy(self._load(key))

    def get_by_id(self, key: str, item_id: str, include_deleted: bool = False) -> Optional[Dict]:
        for item in self._load(key):
            if item.get("id") == item_id:
                if item.get("is_deleted") and not include_deleted:
                    return None
                return copy.deepcopy(item)
        return None

    def pending(self, key: str) -> List[Dict]:
        """Registros com mudanças locais ainda não enviadas"""
        return [copy.deepcopy(i) for i in self._load(key) if not i.get("is_synced")]

    def count(self, key: str, include_deleted: bool = False) -> int:
        items = self._load(key)
        if include_deleted:
            return len(items)
        return sum(1 for i in items if not i.get("is_deleted"))

    def collections(self) -> List[str]:
        return [k[len(ITEMS_PREFIX):] for k in self.kv.keys(ITEMS_PREFIX)]

    # --- Escrita ---

    def put(self, key: str, item: Dict) -> Dict:
        """Upsert por id. Cria a coleção se ela ainda não existir."""
        self.put_many(key, [item])
        return copy.deepcopy(item)

    def put_many(self, key: str, new_items: Iterable[Dict]):
        items = self._load(key)
        for item in new_items:
            if not item.get("id"):
                raise ValueError(f"Registro sem 'id' não pode ser gravado em '{key}'")
            index = self._index_of(items, item["id"])
            if index >= 0:
                # Atualização mantém a posição original
                items[index] = copy.deepcopy(item)
            else:
                items.append(copy.deepcopy(item))
        self._save(key, items)

    def soft_delete(self, key: str, item_id: str) -> bool:
        """Marca como deletado sem remover; o registro fica até o sync confirmar"""
        items = self._load(key)
        index = self._index_of(items, item_id)
        if index < 0:
            return False
        items[index].update(
            is_deleted=True,
            updated_at=self.clock().isoformat(),
            is_synced=False,
            sync_state=SyncState.PENDING_SYNC.value,
        )
        self._save(key, items)
        return True

    def purge(self, key: str, item_id: str) -> bool:
        """Remoção física (usar apenas após confirmação remota da exclusão)"""
        return self.remove_many(key, [item_id]) > 0

    def remove_many(self, key: str, ids: Iterable[str]) -> int:
        doomed = set(ids)
        items = self._load(key)
        remaining = [i for i in items if i.get("id") not in doomed]
        removed = len(items) - len(remaining)
        if removed:
            self._save(key, remaining)
        return removed

    def replace(self, key: str, items: List[Dict]):
        self._save(key, copy.deepcopy(items))

    def set_sync_state(self, key: str, item_id: str, state: SyncState) -> bool:
        """Transição de estado de sync sem alterar o conteúdo do registro"""
        items = self._load(key)
        index = self._index_of(items, item_id)
        if index < 0:
            return False
        items[index]["sync_state"] = state.value
        items[index]["is_synced"] = state == SyncState.SYNCED
        self._save(key, items)
        logger.debug("%s/%s -> %s", key, item_id, state.value)
        return True
