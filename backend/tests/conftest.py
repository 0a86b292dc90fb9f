# tests/conftest.py
"""
Fixtures et factories partagées sur l'ensemble de la suite de tests.

Trois couches :
    1. Engine  : fonctions pures, aucun mock nécessaire (factories de profils)
    2. Service : mocks AsyncSession + repos via pytest-mock
    3. Router  : httpx.AsyncClient + dependency_overrides FastAPI
"""
import pytest
from types import SimpleNamespace
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.main import app
from pharmalink.core.database import get_db
from pharmalink.shared.deps import get_current_user
from pharmalink.shared.enums import (
    AlertStatus,
    CreatorType,
    MissionStatus,
    PositionType,
    ResponseStatus,
    UserType,
)


# ── Coordonnées de référence ──────────────────────────────────────────────────

LYON = (45.7640, 4.8357)
VILLEURBANNE = (45.7719, 4.8902)      # ~4,3 km de Lyon
VIENNE = (45.5256, 4.8744)            # ~26,7 km de Lyon
GRENOBLE = (45.1885, 5.7245)          # ~95 km de Lyon

FAR_FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)


# ── Factories de modèles ORM (SimpleNamespace, léger, sans ORM) ──────────────

def make_prefs(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "user_id": 1,
        "urgent_alerts_enabled": True,
        "urgent_alerts_radius_km": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_animator_profile(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "animation_specialties": ["dermo"],
        "mobility_zones": ["Rhône"],
        "daily_rate_min": 220.0,
        "average_rating": None,
        "missions_completed": 0,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_user(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "email": "user@test.com",
        "user_type": UserType.PREPARATEUR,
        "first_name": "Camille",
        "last_name": "Martin",
        "photo_url": None,
        "is_active": True,
        "current_latitude": LYON[0],
        "current_longitude": LYON[1],
        "current_city": "Lyon",
        "notification_preference": make_prefs(),
        "animator_profile": None,
        "created_at": datetime(2025, 1, 1),
        "updated_at": datetime(2025, 1, 1),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_titulaire(**kwargs) -> SimpleNamespace:
    defaults = {"id": 10, "email": "titulaire@test.com", "user_type": UserType.TITULAIRE}
    defaults.update(kwargs)
    return make_user(**defaults)


def make_laboratoire(**kwargs) -> SimpleNamespace:
    defaults = {"id": 20, "email": "labo@test.com", "user_type": UserType.LABORATOIRE}
    defaults.update(kwargs)
    return make_user(**defaults)


def make_animator(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 30,
        "email": "animateur@test.com",
        "user_type": UserType.ANIMATEUR,
        "animator_profile": make_animator_profile(id=kwargs.get("id", 30)),
    }
    defaults.update(kwargs)
    return make_user(**defaults)


def make_alert(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "creator_id": 10,
        "creator_type": CreatorType.PHARMACY,
        "title": "Remplacement préparateur samedi",
        "description": None,
        "position_type": PositionType.PREPARATEUR,
        "required_specialties": [],
        "start_date": date(2099, 6, 10),
        "end_date": date(2099, 6, 12),
        "expires_at": FAR_FUTURE,
        "latitude": LYON[0],
        "longitude": LYON[1],
        "radius_km": 30,
        "city": "Lyon",
        "hourly_rate": 18.5,
        "status": AlertStatus.ACTIVE,
        "notified_count": 0,
        "filled_at": None,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_lab_alert(**kwargs) -> SimpleNamespace:
    defaults = {
        "creator_id": 20,
        "creator_type": CreatorType.LABORATORY,
        "title": "Animation dermo Lyon",
        "position_type": PositionType.ANIMATEUR,
        "required_specialties": ["dermo"],
        "hourly_rate": 31.25,
    }
    defaults.update(kwargs)
    return make_alert(**defaults)


def make_response(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "alert_id": 1,
        "candidate_id": 1,
        "status": ResponseStatus.INTERESTED,
        "message": None,
        "response_time": datetime(2025, 1, 2, tzinfo=timezone.utc),
        "candidate": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_mission(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "client_id": 20,
        "client_type": CreatorType.LABORATORY,
        "animator_id": None,
        "match_id": None,
        "title": "Animation solaire",
        "description": "Conseil dermo en officine",
        "mission_type": "animation",
        "specialties_required": ["dermo"],
        "city": "Lyon",
        "department": "69",
        "region": "Auvergne-Rhône-Alpes",
        "latitude": LYON[0],
        "longitude": LYON[1],
        "start_date": date(2025, 6, 10),
        "end_date": date(2025, 6, 12),
        "daily_rate_min": 200.0,
        "daily_rate_max": 300.0,
        "daily_rate": None,
        "status": MissionStatus.DRAFT,
        "connection_fee": None,
        "fee_included": None,
        "proposal_sent_at": None,
        "accepted_at": None,
        "confirmed_at": None,
        "assigned_at": None,
        "started_at": None,
        "completed_at": None,
        "cancelled_at": None,
        "cancel_reason": None,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": None,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_notification(**kwargs) -> SimpleNamespace:
    defaults = {
        "id": 1,
        "user_id": 1,
        "type": "urgent_alert",
        "title": "🚨 Alerte urgente près de chez vous",
        "content": "Remplacement préparateur samedi",
        "data": {"alert_id": 1, "distance_km": 4.3},
        "read": False,
        "created_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_geo_row(user, distance_km: float = 0.0) -> SimpleNamespace:
    """Ligne renvoyée par find_*_for_urgent_alert pour `user`."""
    prefs = user.notification_preference
    animator = user.animator_profile
    return SimpleNamespace(
        user_id=user.id,
        user_type=user.user_type.value,
        latitude=user.current_latitude,
        longitude=user.current_longitude,
        urgent_alerts_enabled=prefs.urgent_alerts_enabled if prefs else False,
        urgent_alerts_radius_km=prefs.urgent_alerts_radius_km if prefs else None,
        specialties=list(animator.animation_specialties) if animator else [],
        distance_km=distance_km,
    )


# ── DB mock factory ───────────────────────────────────────────────────────────

def make_async_db() -> AsyncMock:
    """
    AsyncMock simulant une AsyncSession SQLAlchemy.
    Fournit une side_effect sur refresh() pour simuler le SET d'ID par le DB.
    """
    db = AsyncMock(spec=AsyncSession)
    added_objects: list = []

    def capture_add(obj):
        added_objects.append(obj)

    db.add = MagicMock(side_effect=capture_add)
    db.add_all = MagicMock(side_effect=lambda objs: added_objects.extend(objs))
    db.added = added_objects

    async def refresh_side_effect(obj, *args, **kwargs):
        if not getattr(obj, "id", None):
            try:
                obj.id = 1
            except (AttributeError, TypeError):
                pass

    db.refresh = AsyncMock(side_effect=refresh_side_effect)
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.close = AsyncMock()

    return db


# ── Fixtures HTTP (httpx.AsyncClient + dependency_overrides) ─────────────────

async def _client_as(user):
    mock_db = AsyncMock(spec=AsyncSession)
    app.dependency_overrides[get_db] = lambda: mock_db
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
async def client():
    """Client sans auth, pour endpoints publics ou vérifier le 401/403."""
    async with await _client_as(None) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def creator_client():
    """Client authentifié comme pharmacien titulaire."""
    async with await _client_as(make_titulaire()) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def lab_client():
    """Client authentifié comme laboratoire."""
    async with await _client_as(make_laboratoire()) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def candidate_client():
    """Client authentifié comme préparateur."""
    async with await _client_as(make_user()) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def animator_client():
    """Client authentifié comme animateur freelance."""
    async with await _client_as(make_animator()) as c:
        yield c
    app.dependency_overrides.clear()
