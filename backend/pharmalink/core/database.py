# backend/pharmalink/core/database.py
"""
Moteur async + fabrique de sessions.

Une requête HTTP = une AsyncSession (get_db).
Les repositories commitent eux-mêmes ; les écritures multi-lignes
qui doivent rester atomiques passent par une fonction SQL unique,
ou par un hook before_commit exécuté dans la transaction du repository.
"""
from typing import AsyncIterator, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from pharmalink.core.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, pool_pre_ping=True)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

# Écriture annexe jouée juste avant le commit d'un repository
BeforeCommit = Callable[[AsyncSession], Awaitable[None]]


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
