# tests/core/test_security.py
"""
Tests unitaires pour core.security et l'authentification bearer de shared.deps.

Couverture :
    create_access_token / decode_token → sub + type, signature vérifiée, expiration
    Bearer réel (sans surcharge de get_current_user)
        → token valide → utilisateur chargé, 200
        → token expiré / falsifié / utilisateur inactif → 401
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from pharmalink.core.database import get_db
from pharmalink.core.security import create_access_token, decode_token
from pharmalink.main import app
from tests.conftest import make_user

ROUTER = "pharmalink.modules.notifications.router"


def _db_returning(user):
    db = AsyncMock(spec=AsyncSession)
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db.execute = AsyncMock(return_value=result)
    app.dependency_overrides[get_db] = lambda: db
    return db


# ── Tokens ────────────────────────────────────────────────────────────────────

@pytest.mark.engine
def test_token_aller_retour():
    payload = decode_token(create_access_token(42))
    assert payload["sub"] == "42"
    assert payload["type"] == "access"
    assert "exp" in payload


@pytest.mark.engine
def test_token_expire_refuse():
    with pytest.raises(JWTError):
        decode_token(create_access_token(42, expires_minutes=-1))


@pytest.mark.engine
def test_token_falsifie_refuse():
    token = create_access_token(42)
    header, payload, signature = token.split(".")
    with pytest.raises(JWTError):
        decode_token(".".join([header, payload, signature[::-1]]))


# ── Bearer réel ───────────────────────────────────────────────────────────────

@pytest.mark.router
@pytest.mark.asyncio
async def test_bearer_valide_charge_l_utilisateur(client, mocker):
    db = _db_returning(make_user(id=7))
    mock_count = mocker.patch(f"{ROUTER}.service.unread_count", AsyncMock(return_value=2))

    resp = await client.get(
        "/notifications/unread-count",
        headers={"Authorization": f"Bearer {create_access_token(7)}"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"unread": 2}
    db.execute.assert_awaited_once()
    assert mock_count.await_args[0][1].id == 7


@pytest.mark.router
@pytest.mark.asyncio
async def test_bearer_expire_401(client):
    db = _db_returning(make_user(id=7))
    resp = await client.get(
        "/notifications/unread-count",
        headers={"Authorization": f"Bearer {create_access_token(7, expires_minutes=-1)}"},
    )
    assert resp.status_code == 401
    db.execute.assert_not_awaited()


@pytest.mark.router
@pytest.mark.asyncio
async def test_bearer_falsifie_401(client):
    _db_returning(make_user(id=7))
    resp = await client.get(
        "/notifications/unread-count",
        headers={"Authorization": "Bearer pas.un.jwt"},
    )
    assert resp.status_code == 401


@pytest.mark.router
@pytest.mark.asyncio
async def test_bearer_utilisateur_inactif_401(client):
    _db_returning(make_user(id=7, is_active=False))
    resp = await client.get(
        "/notifications/unread-count",
        headers={"Authorization": f"Bearer {create_access_token(7)}"},
    )
    assert resp.status_code == 401
