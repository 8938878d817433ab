import os
from typing import Optional

from dotenv import load_dotenv
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker

# Registra a tabela sync_records no metadata antes do create_all
from gestao_clinica.models.remote import RemoteRecord  # noqa: F401

# Carrega as variáveis do arquivo .env
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("A variável de ambiente DATABASE_URL não está definida!")


def make_engine(url: str) -> AsyncEngine:
    """postgresql+asyncpg://... em produção, sqlite+aiosqlite:///... nos testes"""
    return create_async_engine(url, echo=os.getenv("SQL_ECHO", "0") == "1")


engine = make_engine(DATABASE_URL)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(db_engine: Optional[AsyncEngine] = None):
    """Cria as tabelas do servidor de sync (no engine padrão ou no informado)"""
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncSession:
    """Injeção de dependência para rotas FastAPI"""
    async with async_session() as session:
        yield session
