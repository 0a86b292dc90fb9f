# tests/engine/missions/test_state_machine.py
"""
Tests unitaires pour engine.missions.state_machine

Couverture :
    Table de transitions :
        - chaque action a une cible et au moins un état source
        - aucune transition ne sort d'un état terminal
        - send_proposal uniquement depuis open (draft / confirmed refusés)
        - decline_proposal ramène à open
        - cancel depuis tout état non terminal

    assert_transition() :
        - mauvais acteur → AccessDeniedError
        - mauvais état → InvalidTransitionError (current / target renseignés)
        - action inconnue → ValueError

    rates_locked() / is_terminal()
"""
import pytest

from pharmalink.engine.missions.state_machine import (
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    assert_transition,
    can_transition,
    get_transition,
    is_terminal,
    rates_locked,
    schedule_locked,
)
from pharmalink.shared.enums import MissionActor, MissionStatus
from pharmalink.shared.exceptions import AccessDeniedError, InvalidTransitionError

pytestmark = pytest.mark.engine


class TestTable:
    def test_aucune_sortie_d_etat_terminal(self):
        for transition in TRANSITIONS.values():
            assert not (transition.sources & TERMINAL_STATUSES), transition.action

    def test_send_proposal_uniquement_depuis_open(self):
        assert can_transition("send_proposal", MissionStatus.OPEN) is True
        assert can_transition("send_proposal", MissionStatus.DRAFT) is False
        assert can_transition("send_proposal", MissionStatus.CONFIRMED) is False

    def test_decline_retour_open(self):
        assert get_transition("decline_proposal").target == MissionStatus.OPEN

    def test_cancel_depuis_tout_non_terminal(self):
        for status in NON_TERMINAL_STATUSES:
            assert can_transition("cancel", status) is True

    def test_cancel_refuse_sur_terminal(self):
        assert can_transition("cancel", MissionStatus.COMPLETED) is False
        assert can_transition("cancel", MissionStatus.CANCELLED) is False

    def test_start_depuis_confirmed_ou_assigned(self):
        assert can_transition("start", MissionStatus.CONFIRMED) is True
        assert can_transition("start", MissionStatus.ASSIGNED) is True
        assert can_transition("start", MissionStatus.ANIMATOR_ACCEPTED) is False

    def test_chemin_nominal(self):
        path = [
            ("publish", MissionStatus.DRAFT),
            ("send_proposal", MissionStatus.OPEN),
            ("accept_proposal", MissionStatus.PROPOSAL_SENT),
            ("confirm", MissionStatus.ANIMATOR_ACCEPTED),
            ("start", MissionStatus.CONFIRMED),
            ("complete", MissionStatus.IN_PROGRESS),
        ]
        current = MissionStatus.DRAFT
        for action, expected_source in path:
            assert current == expected_source
            current = get_transition(action).target
        assert current == MissionStatus.COMPLETED


class TestAssertTransition:
    def test_succes(self):
        t = assert_transition("publish", MissionStatus.DRAFT, MissionActor.CLIENT)
        assert t.target == MissionStatus.OPEN

    def test_accepte_valeur_brute(self):
        t = assert_transition("publish", "draft", MissionActor.CLIENT)
        assert t.target == MissionStatus.OPEN

    def test_mauvais_acteur(self):
        with pytest.raises(AccessDeniedError):
            assert_transition("accept_proposal", MissionStatus.PROPOSAL_SENT, MissionActor.CLIENT)

    def test_animateur_ne_peut_pas_annuler(self):
        with pytest.raises(AccessDeniedError):
            assert_transition("cancel", MissionStatus.OPEN, MissionActor.ANIMATOR)

    def test_systeme_peut_annuler(self):
        t = assert_transition("cancel", MissionStatus.CONFIRMED, MissionActor.SYSTEM)
        assert t.target == MissionStatus.CANCELLED

    def test_send_proposal_depuis_draft(self):
        with pytest.raises(InvalidTransitionError) as exc:
            assert_transition("send_proposal", MissionStatus.DRAFT, MissionActor.CLIENT)
        assert exc.value.current == MissionStatus.DRAFT
        assert exc.value.target == MissionStatus.PROPOSAL_SENT
        assert exc.value.code == "INVALID_TRANSITION"

    def test_send_proposal_depuis_confirmed(self):
        with pytest.raises(InvalidTransitionError):
            assert_transition("send_proposal", MissionStatus.CONFIRMED, MissionActor.CLIENT)

    def test_message_actionnable(self):
        with pytest.raises(InvalidTransitionError) as exc:
            assert_transition("accept_proposal", MissionStatus.CANCELLED, MissionActor.ANIMATOR)
        assert exc.value.message == "Cette mission n'attend plus votre réponse."

    def test_action_inconnue(self):
        with pytest.raises(ValueError):
            get_transition("teleport")


class TestHelpers:
    def test_is_terminal(self):
        assert is_terminal(MissionStatus.COMPLETED) is True
        assert is_terminal(MissionStatus.OPEN) is False

    def test_rates_locked(self):
        assert rates_locked(MissionStatus.PROPOSAL_SENT) is False
        assert rates_locked(MissionStatus.ANIMATOR_ACCEPTED) is True
        assert rates_locked(MissionStatus.DRAFT) is False

    def test_schedule_locked(self):
        assert schedule_locked(MissionStatus.OPEN) is False
        assert schedule_locked(MissionStatus.PROPOSAL_SENT) is True
        assert schedule_locked(MissionStatus.CONFIRMED) is True
        assert schedule_locked(MissionStatus.DRAFT) is False
