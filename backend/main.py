import asyncio
import logging
from fastapi import FastAPI, Depends, HTTPException
from typing import List, Dict, Any
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from gestao_clinica.models.base import CollectionKey, parse_ts
from gestao_clinica.models.remote import RemoteRecord
from gestao_clinica.services.conflicts import content_of, remote_wins, same_content

from backend.database import init_db, get_session

logger = logging.getLogger("SyncServer")

# Recursos aceitos na URL: /sync/push/patients, /sync/pull/medical_records...
RESOURCES = {key.resource for key in CollectionKey}

# Serializa escrita e leitura do cursor (servidor de processo único)
write_lock = asyncio.Lock()


def server_now() -> datetime:
    # Colunas sem fuso: tudo gravado em UTC naive
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: str) -> datetime:
    return parse_ts(value).replace(tzinfo=None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield

app = FastAPI(title="Gestão Clínica - Servidor Central", lifespan=lifespan)


def _check_resource(resource_name: str):
    if resource_name not in RESOURCES:
        raise HTTPException(status_code=404, detail=f"Recurso '{resource_name}' desconhecido.")


@app.get("/")
async def root():
    return {
        "status": "online",
        "resources": sorted(RESOURCES),
        "time": server_now().isoformat()
    }


@app.post("/sync/push/{resource_name}")
async def push_generic(
    resource_name: str,
    payload: List[Dict[str, Any]],
    session: AsyncSession = Depends(get_session)
):
    """
    Recebe alterações de um recurso. Cada item passa pela regra
    last-writer-wins: se a cópia do servidor for mais nova (ou empatar),
    o item é recusado e a cópia do servidor volta em 'conflicts'.
    """
    _check_resource(resource_name)

    processed_ids = []
    conflicts = []
    records = []

    # Decisão, carimbo e commit sob o lock: nenhum pull vê um cursor
    # posterior a linhas ainda não commitadas
    async with write_lock:
        for item in payload:
            item_id = item.get("id")
            try:
                updated_at = to_naive_utc(item["updated_at"])
            except (KeyError, TypeError, AttributeError, ValueError):
                continue
            if not item_id:
                continue
            item = content_of(item)

            existing = await session.get(RemoteRecord, (resource_name, item_id))
            if existing:
                server_copy = existing.as_item()
                if same_content(item, server_copy):
                    # Reenvio idempotente
                    processed_ids.append(item_id)
                    continue
                if remote_wins(item, server_copy):
                    conflicts.append(server_copy)
                    continue

            record = existing or RemoteRecord(resource=resource_name, id=item_id)
            record.payload = item
            record.updated_at = updated_at
            record.is_deleted = bool(item.get("is_deleted"))
            records.append(record)
            processed_ids.append(item_id)

        received_at = server_now()
        for record in records:
            record.received_at = received_at
            session.add(record)
        await session.commit()

    logger.info("PUSH %s: %d aceitos, %d conflitos", resource_name, len(processed_ids), len(conflicts))
    return {
        "processed_ids": processed_ids,
        "conflicts": conflicts,
        "status": "success",
        "resource": resource_name,
    }


@app.get("/sync/pull/{resource_name}")
async def pull_generic(
    resource_name: str,
    since: str,
    session: AsyncSession = Depends(get_session)
):
    """
    Retorna tudo que o servidor recebeu depois de 'since' (relógio do servidor).
    """
    _check_resource(resource_name)

    try:
        since_dt = to_naive_utc(since)
    except ValueError:
        since_dt = datetime(1970, 1, 1)

    statement = (
        select(RemoteRecord)
        .where(RemoteRecord.resource == resource_name, RemoteRecord.received_at > since_dt)
        .order_by(RemoteRecord.received_at)
    )
    async with write_lock:
        current_server_time = server_now()
        result = await session.exec(statement)
        changes = result.all()

    return {
        "resource": resource_name,
        "changes": [record.as_item() for record in changes],
        "current_server_time": current_server_time.isoformat(),
    }
