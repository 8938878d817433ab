from datetime import datetime
from typing import Any, Dict
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class RemoteRecord(SQLModel, table=True):
    """
    Cópia de autoridade no servidor central. Uma tabela genérica para todos
    os recursos: o payload guarda o registro completo enviado pelo cliente.
    """
    __tablename__ = "sync_records"

    resource: str = Field(primary_key=True)
    id: str = Field(primary_key=True)

    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    # updated_at vem do cliente (last-writer-wins); received_at é o relógio
    # do servidor e serve de cursor para o pull
    updated_at: datetime
    received_at: datetime = Field(index=True)
    is_deleted: bool = Field(default=False)

    def as_item(self) -> Dict[str, Any]:
        item = dict(self.payload or {})
        item["id"] = self.id
        item["is_deleted"] = self.is_deleted
        return item
