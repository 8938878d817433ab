import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from gestao_clinica.errors import RecordNotFound, ValidationFailed
from gestao_clinica.models.base import CollectionKey, SyncModel, SyncState, utc_now
from gestao_clinica.models.errors import ErrorSeverity, ErrorType

T = TypeVar("T", bound=SyncModel)


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


class SyncRepository(Generic[T]):
    """
    Classe base para repositórios offline-first.
    Valida via modelo, grava no LocalItemStore e marca a mudança para o sync
    (registros novos nascem LOCAL_ONLY; alterações viram PENDING_SYNC).
    """

    def __init__(self, model_type: Type[T], collection: CollectionKey, store, ledger,
                 clock: Callable = utc_now):
        self.model_type = model_type
        self.collection = collection
        self.store = store
        self.ledger = ledger
        self.clock = clock

    def _validate(self, data: Dict[str, Any]) -> T:
        try:
            return self.model_type.model_validate(data)
        except ValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            self.ledger.handle_error(
                f"Dados inválidos para {self.collection.value}",
                ErrorType.VALIDATION,
                ErrorSeverity.ERROR,
                {"collection": self.collection.value, "errors": errors},
            )
            raise ValidationFailed(f"Dados inválidos para {self.collection.value}", errors) from e

    def _to_entity(self, item: Dict[str, Any]) -> Optional[T]:
        """
        Registros vindos do pull entram no store sem validação: os inválidos
        são ignorados na leitura e registrados como VALIDATION/WARNING.
        """
        try:
            return self.model_type.model_validate(item)
        except ValidationError as e:
            self.ledger.handle_error(
                f"Registro inválido ignorado em {self.collection.value}",
                ErrorType.VALIDATION,
                ErrorSeverity.WARNING,
                {"collection": self.collection.value, "id": item.get("id"),
                 "errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]},
            )
            return None

    def _to_entities(self, items: List[Dict[str, Any]]) -> List[T]:
        entities = (self._to_entity(item) for item in items)
        return [entity for entity in entities if entity is not None]

    # --- MÉTODOS CRUD ---

    def create(self, data: Dict[str, Any]) -> T:
        now = self.clock()
        record = {
            **data,
            "created_at": now,
            "updated_at": now,
            "is_deleted": False,
            "is_synced": False,
            "sync_state": SyncState.LOCAL_ONLY,
        }
        entity = self._validate(record)
        self.store.put(self.collection, entity.model_dump(mode="json"))
        return entity

    def update(self, entity_id: str, changes: Dict[str, Any]) -> T:
        current = self.store.get_by_id(self.collection, entity_id)
        if current is None:
            raise RecordNotFound(f"{self.collection.value}/{entity_id} não encontrado")

        # Registro que nunca foi enviado continua LOCAL_ONLY
        state = SyncState.LOCAL_ONLY
        if current.get("sync_state") != SyncState.LOCAL_ONLY.value:
            state = SyncState.PENDING_SYNC

        protected = {"id", "created_at", "is_deleted", "is_synced", "sync_state"}
        merged = {**current, **{k: v for k, v in changes.items() if k not in protected}}
        merged.update(updated_at=self.clock(), is_synced=False, sync_state=state)

        entity = self._validate(merged)
        self.store.put(self.collection, entity.model_dump(mode="json"))
        return entity

    def delete(self, entity_id: str, hard: bool = False) -> bool:
        """Soft delete por padrão; hard=True remove sem passar pelo sync"""
        if hard:
            return self.store.purge(self.collection, entity_id)
        return self.store.soft_delete(self.collection, entity_id)

    def get_by_id(self, entity_id: str) -> Optional[T]:
        item = self.store.get_by_id(self.collection, entity_id)
        return self._to_entity(item) if item else None

    def list_all(self) -> List[T]:
        return self._to_entities(self.store.get(self.collection))

    def paginate(self, page: int = 1, limit: int = 20, sort_by: Optional[str] = None,
                 descending: bool = False, filters: Optional[Dict[str, Any]] = None) -> Page[T]:
        if page < 1 or limit < 1:
            raise ValueError("page e limit devem ser positivos")

        rows = []
        for item in self.store.get(self.collection):
            if filters and not all(item.get(k) == v for k, v in filters.items()):
                continue
            entity = self._to_entity(item)
            if entity is not None:
                rows.append((item, entity))
        if sort_by:
            # None sempre vai para o fim, independente da direção
            present = [r for r in rows if r[0].get(sort_by) is not None]
            missing = [r for r in rows if r[0].get(sort_by) is None]
            rows = sorted(present, key=lambda r: r[0][sort_by], reverse=descending) + missing

        entities = [entity for _, entity in rows]
        start = (page - 1) * limit
        return Page(
            items=entities[start:start + limit],
            total=len(entities),
            page=page,
            limit=limit,
        )
