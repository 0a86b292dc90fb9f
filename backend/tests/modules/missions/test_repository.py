# tests/modules/missions/test_repository.py
"""
Tests unitaires pour modules.missions.repository : MissionRepository.

Couverture :
    transition  → hook before_commit joué dans la transaction, avant le commit
                → échec du hook → rollback, exception propagée
                → course perdue (zéro ligne) → None, hook jamais joué
    search_open → statut open + date à venir, filtres optionnels,
                  recouvrement de spécialités (&&), tri par date, limite
"""
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from pharmalink.modules.missions.repository import MissionRepository
from pharmalink.shared.enums import MissionStatus
from tests.conftest import make_async_db, make_mission

pytestmark = pytest.mark.service

repository = MissionRepository()


def _returning(mission):
    result = MagicMock()
    result.scalar_one_or_none.return_value = mission
    return result


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


# ── transition ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_transition_hook_avant_commit():
    db = make_async_db()
    db.execute = AsyncMock(return_value=_returning(make_mission(status=MissionStatus.OPEN)))
    calls = []
    db.commit = AsyncMock(side_effect=lambda: calls.append("commit"))

    async def hook(session):
        assert session is db
        calls.append("hook")

    mission = await repository.transition(
        db, 1, {MissionStatus.DRAFT}, {"status": MissionStatus.OPEN}, before_commit=hook,
    )

    assert mission.status == MissionStatus.OPEN
    assert calls == ["hook", "commit"]
    db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_transition_echec_hook_rollback():
    db = make_async_db()
    db.execute = AsyncMock(return_value=_returning(make_mission(status=MissionStatus.OPEN)))
    hook = AsyncMock(side_effect=RuntimeError("compteur indisponible"))

    with pytest.raises(RuntimeError):
        await repository.transition(
            db, 1, {MissionStatus.DRAFT}, {"status": MissionStatus.OPEN}, before_commit=hook,
        )

    db.commit.assert_not_awaited()
    db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_transition_course_perdue_sans_hook():
    db = make_async_db()
    db.execute = AsyncMock(return_value=_returning(None))
    hook = AsyncMock()

    result = await repository.transition(
        db, 1, {MissionStatus.DRAFT}, {"status": MissionStatus.OPEN}, before_commit=hook,
    )

    assert result is None
    hook.assert_not_awaited()
    db.commit.assert_not_awaited()


# ── search_open ───────────────────────────────────────────────────────────────

def _search_db(missions):
    db = make_async_db()
    result = MagicMock()
    result.scalars.return_value.all.return_value = missions
    db.execute = AsyncMock(return_value=result)
    return db


@pytest.mark.asyncio
async def test_search_open_tous_filtres():
    db = _search_db([make_mission(status=MissionStatus.OPEN)])

    result = await repository.search_open(
        db, date(2025, 6, 1),
        regions=["Auvergne-Rhône-Alpes"],
        mission_type="animation",
        min_daily_rate=220,
        specialties=["dermo"],
        limit=5,
    )

    assert len(result) == 1
    sql = _sql(db.execute.await_args[0][0])
    assert "animation_missions.status =" in sql
    assert "animation_missions.start_date >=" in sql
    assert "animation_missions.region IN" in sql
    assert "animation_missions.mission_type =" in sql
    assert "animation_missions.daily_rate_max >=" in sql
    assert "animation_missions.specialties_required &&" in sql
    assert "ORDER BY animation_missions.start_date ASC" in sql
    assert "LIMIT" in sql


@pytest.mark.asyncio
async def test_search_open_sans_filtre():
    db = _search_db([])

    await repository.search_open(db, date(2025, 6, 1))

    sql = _sql(db.execute.await_args[0][0])
    assert "region" not in sql.split("WHERE", 1)[1]
    assert "&&" not in sql
    assert "daily_rate_max >=" not in sql
