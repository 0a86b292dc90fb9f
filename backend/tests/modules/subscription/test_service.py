# tests/modules/subscription/test_service.py
"""
Tests unitaires pour modules.subscription.service : SubscriptionService.

Couverture :
    get_status         → quotas du mois (utilisés / max / restants / illimité)
    ensure_alert_quota → sous le quota OK, quota atteint → QuotaExceededError,
                         tier illimité → aucun comptage
    record_*           → increment_usage appelé avec le bon compteur,
                         commit=False quand joué dans une transaction appelante
    fee_status         → tier + compteur missions_confirmed transmis à l'engine
"""
import pytest
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock

from pharmalink.modules.subscription.service import SubscriptionService
from pharmalink.shared.enums import SubscriptionTier
from pharmalink.shared.exceptions import QuotaExceededError
from tests.conftest import make_async_db, make_laboratoire, make_titulaire

pytestmark = pytest.mark.service

service = SubscriptionService()

SVC = "pharmalink.modules.subscription.service"
TODAY = date(2025, 6, 15)


# ── get_status ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_status_pro(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.PRO))
    mocker.patch(
        f"{SVC}.repo.get_usage",
        AsyncMock(return_value=SimpleNamespace(missions_confirmed=4, alerts_sent=2, missions_published=1)),
    )

    result = await service.get_status(make_async_db(), make_laboratoire(), today=TODAY)

    assert result["period"] == date(2025, 6, 1)
    assert result["contacts"] == {"used": 4, "max": 10, "remaining": 6, "unlimited": False}
    assert result["alerts"]["remaining"] == 3


@pytest.mark.asyncio
async def test_get_status_sans_usage(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.BUSINESS))
    mocker.patch(f"{SVC}.repo.get_usage", AsyncMock(return_value=None))

    result = await service.get_status(make_async_db(), make_laboratoire(), today=TODAY)

    assert result["contacts"]["unlimited"] is True
    assert result["contacts"]["remaining"] is None
    assert result["alerts"]["used"] == 0


# ── ensure_alert_quota ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_quota_alertes_disponible(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.FREE))
    mocker.patch(f"{SVC}.repo.get_counter", AsyncMock(return_value=0))
    await service.ensure_alert_quota(make_async_db(), make_titulaire(), today=TODAY)


@pytest.mark.asyncio
async def test_quota_alertes_atteint(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.FREE))
    mocker.patch(f"{SVC}.repo.get_counter", AsyncMock(return_value=1))
    with pytest.raises(QuotaExceededError) as exc:
        await service.ensure_alert_quota(make_async_db(), make_titulaire(), today=TODAY)
    assert exc.value.code == "ALERT_QUOTA_REACHED"


@pytest.mark.asyncio
async def test_quota_alertes_labo_free_nul(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.FREE))
    mocker.patch(f"{SVC}.repo.get_counter", AsyncMock(return_value=0))
    with pytest.raises(QuotaExceededError):
        await service.ensure_alert_quota(make_async_db(), make_laboratoire(), today=TODAY)


@pytest.mark.asyncio
async def test_quota_alertes_illimite(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.BUSINESS))
    mock_counter = mocker.patch(f"{SVC}.repo.get_counter", AsyncMock())
    await service.ensure_alert_quota(make_async_db(), make_titulaire(), today=TODAY)
    mock_counter.assert_not_awaited()


# ── Compteurs ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_record_alert_sent(mocker):
    mock_inc = mocker.patch(f"{SVC}.repo.increment_usage", AsyncMock())
    await service.record_alert_sent(make_async_db(), 10, today=TODAY)
    assert mock_inc.await_args[0][1:] == (10, "alerts_sent", TODAY)


@pytest.mark.asyncio
async def test_record_connection(mocker):
    mock_inc = mocker.patch(f"{SVC}.repo.increment_usage", AsyncMock())
    await service.record_connection(make_async_db(), 20, today=TODAY)
    assert mock_inc.await_args[0][2] == "missions_confirmed"


@pytest.mark.asyncio
async def test_record_mission_published(mocker):
    mock_inc = mocker.patch(f"{SVC}.repo.increment_usage", AsyncMock())
    await service.record_mission_published(make_async_db(), 20, today=TODAY)
    assert mock_inc.await_args[0][2] == "missions_published"


@pytest.mark.asyncio
async def test_record_sans_commit_dans_une_transaction(mocker):
    mock_inc = mocker.patch(f"{SVC}.repo.increment_usage", AsyncMock())
    await service.record_connection(make_async_db(), 20, today=TODAY, commit=False)
    assert mock_inc.await_args[1] == {"commit": False}


@pytest.mark.asyncio
async def test_record_commit_par_defaut(mocker):
    mock_inc = mocker.patch(f"{SVC}.repo.increment_usage", AsyncMock())
    await service.record_alert_sent(make_async_db(), 10, today=TODAY)
    assert mock_inc.await_args[1] == {"commit": True}


# ── fee_status ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fee_status_quota_epuise(mocker):
    mocker.patch(f"{SVC}.repo.get_tier", AsyncMock(return_value=SubscriptionTier.STARTER))
    mock_counter = mocker.patch(f"{SVC}.repo.get_counter", AsyncMock(return_value=3))

    status = await service.fee_status(
        make_async_db(), make_laboratoire(), date(2025, 6, 10), date(2025, 6, 12), today=TODAY,
    )

    assert status.included_in_subscription is False
    assert status.amount == 15
    assert mock_counter.await_args[0][2] == "missions_confirmed"
