# tests/engine/matching/test_eligibility.py
"""
Tests unitaires pour engine.matching.eligibility

Couverture :
    specialties_match() :
        - aucune exigence → True
        - OU logique : ["dermo","oncologie"] accepte ["oncologie"]
        - aucune spécialité commune → False

    role_matches() :
        - alerte pharmacie → user_type == position_type
        - alerte laboratoire → animateur uniquement

    is_eligible() :
        - dans le rayon → distance brute
        - borne inclusive distance == rayon
        - préférence de rayon plus petite → exclu
        - alertes désactivées / sans position → exclu
        - créateur jamais notifié de sa propre alerte

    compute_eligible_recipients() :
        - dédoublonnage par user_id
        - tri par distance croissante, distance arrondie à 1 décimale

    filter_alerts_for_viewer() :
        - viewer sans position ou désactivé → []
        - tri par distance

    RecipientProfile.from_user() / from_row()
"""
import pytest

from pharmalink.engine.geo.distance import haversine_km
from pharmalink.engine.matching.eligibility import (
    RecipientProfile,
    compute_eligible_recipients,
    filter_alerts_for_viewer,
    is_eligible,
    role_matches,
    specialties_match,
)
from pharmalink.shared.enums import PositionType
from tests.conftest import (
    GRENOBLE,
    LYON,
    VIENNE,
    VILLEURBANNE,
    make_alert,
    make_animator,
    make_animator_profile,
    make_geo_row,
    make_lab_alert,
    make_prefs,
    make_user,
)

pytestmark = pytest.mark.engine


def _profile(user_id=1, user_type="preparateur", at=VILLEURBANNE, **kwargs) -> RecipientProfile:
    return RecipientProfile(
        user_id=user_id,
        user_type=user_type,
        latitude=at[0] if at else None,
        longitude=at[1] if at else None,
        **kwargs,
    )


# ── specialties_match() ───────────────────────────────────────────────────────

class TestSpecialtiesMatch:
    def test_sans_exigence(self):
        assert specialties_match([], ["capillaire"]) is True
        assert specialties_match(None, None) is True

    def test_ou_logique(self):
        assert specialties_match(["dermo", "oncologie"], ["oncologie"]) is True

    def test_aucune_commune(self):
        assert specialties_match(["dermo", "oncologie"], ["capillaire"]) is False

    def test_offre_vide(self):
        assert specialties_match(["dermo"], []) is False


# ── role_matches() ────────────────────────────────────────────────────────────

class TestRoleMatches:
    def test_pharmacie_meme_poste(self):
        assert role_matches(make_alert(position_type=PositionType.PREPARATEUR), "preparateur") is True

    def test_pharmacie_autre_poste(self):
        assert role_matches(make_alert(position_type=PositionType.PREPARATEUR), "conseiller") is False

    def test_laboratoire_animateur(self):
        assert role_matches(make_lab_alert(), "animateur") is True

    def test_laboratoire_refuse_preparateur(self):
        assert role_matches(make_lab_alert(), "preparateur") is False


# ── is_eligible() ─────────────────────────────────────────────────────────────

class TestIsEligible:
    def test_dans_le_rayon(self):
        d = is_eligible(make_alert(), _profile())
        assert d is not None
        assert 4.0 < d < 4.7

    def test_hors_rayon(self):
        assert is_eligible(make_alert(), _profile(at=GRENOBLE)) is None

    def test_borne_inclusive(self):
        """distance == rayon → inclus."""
        d = haversine_km(*VIENNE, *LYON)
        alert = make_alert(radius_km=d)
        assert is_eligible(alert, _profile(at=VIENNE), default_radius_km=100) == pytest.approx(d)

    def test_juste_au_dela_de_la_borne(self):
        d = haversine_km(*VIENNE, *LYON)
        alert = make_alert(radius_km=d - 0.01)
        assert is_eligible(alert, _profile(at=VIENNE), default_radius_km=100) is None

    def test_preference_plus_petite_exclut(self):
        """Vienne (~26,7 km) dans le rayon alerte (30) mais pas dans la préférence (10)."""
        assert is_eligible(make_alert(), _profile(at=VIENNE, radius_pref_km=10)) is None

    def test_preference_plus_grande_ne_depasse_pas_l_alerte(self):
        alert = make_alert(radius_km=20)
        assert is_eligible(alert, _profile(at=VIENNE, radius_pref_km=100)) is None

    def test_alertes_desactivees(self):
        assert is_eligible(make_alert(), _profile(alerts_enabled=False)) is None

    def test_sans_position(self):
        assert is_eligible(make_alert(), _profile(at=None)) is None

    def test_createur_exclu(self):
        alert = make_alert(creator_id=7)
        assert is_eligible(alert, _profile(user_id=7)) is None

    def test_mauvais_role(self):
        assert is_eligible(make_alert(), _profile(user_type="etudiant")) is None

    def test_labo_specialite_ou(self):
        alert = make_lab_alert(required_specialties=["dermo", "oncologie"])
        onco = _profile(user_type="animateur", specialties=["oncologie"])
        capi = _profile(user_id=2, user_type="animateur", specialties=["capillaire"])
        assert is_eligible(alert, onco) is not None
        assert is_eligible(alert, capi) is None

    def test_labo_sans_exigence_accepte_tous_animateurs(self):
        alert = make_lab_alert(required_specialties=[])
        assert is_eligible(alert, _profile(user_type="animateur", specialties=[])) is not None


# ── compute_eligible_recipients() ─────────────────────────────────────────────

class TestComputeEligibleRecipients:
    def test_tri_par_distance(self):
        profiles = [
            _profile(user_id=1, at=VIENNE),
            _profile(user_id=2, at=VILLEURBANNE),
            _profile(user_id=3, at=GRENOBLE),
        ]
        result = compute_eligible_recipients(make_alert(), profiles)
        assert [r.user_id for r in result] == [2, 1]

    def test_distance_arrondie(self):
        result = compute_eligible_recipients(make_alert(), [_profile()])
        assert result[0].distance_km == round(result[0].distance_km, 1)

    def test_dedoublonnage(self):
        profiles = [_profile(user_id=5), _profile(user_id=5)]
        assert len(compute_eligible_recipients(make_alert(), profiles)) == 1

    def test_aucun_eligible(self):
        assert compute_eligible_recipients(make_alert(), [_profile(at=GRENOBLE)]) == []

    def test_donnees_notification(self):
        result = compute_eligible_recipients(make_alert(id=42), [_profile()])
        data = result[0].to_notification_data(42)
        assert data["alert_id"] == 42
        assert data["distance_km"] == result[0].distance_km


# ── filter_alerts_for_viewer() ────────────────────────────────────────────────

class TestFilterAlertsForViewer:
    def test_viewer_sans_position(self):
        assert filter_alerts_for_viewer([make_alert()], _profile(at=None)) == []

    def test_viewer_desactive(self):
        assert filter_alerts_for_viewer([make_alert()], _profile(alerts_enabled=False)) == []

    def test_tri_et_filtrage(self):
        near = make_alert(id=1, latitude=VILLEURBANNE[0], longitude=VILLEURBANNE[1])
        mid = make_alert(id=2, latitude=VIENNE[0], longitude=VIENNE[1])
        far = make_alert(id=3, latitude=GRENOBLE[0], longitude=GRENOBLE[1])
        viewer = _profile(at=LYON)
        result = filter_alerts_for_viewer([mid, far, near], viewer)
        assert [m.alert.id for m in result] == [1, 2]

    def test_scenario_lyon_specialite(self):
        """Seul l'animateur dermo voit l'alerte dermo ; le capillaire non."""
        alert = make_lab_alert(required_specialties=["dermo"])
        dermo = RecipientProfile.from_user(make_animator(id=31, current_latitude=VILLEURBANNE[0],
                                                         current_longitude=VILLEURBANNE[1]))
        capi = RecipientProfile.from_user(make_animator(
            id=32, animator_profile=make_animator_profile(id=32, animation_specialties=["capillaire"]),
        ))
        assert len(filter_alerts_for_viewer([alert], dermo)) == 1
        assert filter_alerts_for_viewer([alert], capi) == []


# ── RecipientProfile ──────────────────────────────────────────────────────────

class TestRecipientProfile:
    def test_from_user_sans_preferences_desactive(self):
        profile = RecipientProfile.from_user(make_user(notification_preference=None))
        assert profile.alerts_enabled is False

    def test_from_user_rayon_preference(self):
        user = make_user(notification_preference=make_prefs(urgent_alerts_radius_km=12))
        profile = RecipientProfile.from_user(user)
        assert profile.radius_pref_km == 12
        assert profile.user_type == "preparateur"

    def test_from_user_animateur_specialites(self):
        profile = RecipientProfile.from_user(make_animator())
        assert profile.specialties == ["dermo"]

    def test_from_row(self):
        row = make_geo_row(make_animator(id=33), distance_km=3.2)
        profile = RecipientProfile.from_row(row)
        assert profile.user_id == 33
        assert profile.user_type == "animateur"
        assert profile.specialties == ["dermo"]
