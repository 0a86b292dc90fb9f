# engine/missions/state_machine.py
"""
Machine à états d'une mission d'animation.

    draft             ──publish──────────▶ open
    open              ──send_proposal────▶ proposal_sent     (client)
    proposal_sent     ──accept_proposal──▶ animator_accepted (animateur)
    proposal_sent     ──decline_proposal─▶ open              (animateur)
    animator_accepted ──confirm──────────▶ confirmed
    open              ──assign───────────▶ assigned
    confirmed|assigned──start────────────▶ in_progress
    in_progress       ──complete─────────▶ completed

    tout état non terminal ──cancel──▶ cancelled (client ou système)

Chaque action déclare ses états sources, sa cible et les acteurs
autorisés. Le service applique la cible via une mise à jour
conditionnelle (WHERE status = source) : la table est la seule
source de vérité sur ce qui est permis.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet

from pharmalink.shared.enums import MissionActor, MissionStatus
from pharmalink.shared.exceptions import AccessDeniedError, InvalidTransitionError


# ── Ensembles d'états ─────────────────────────────────────────────────────────

TERMINAL_STATUSES: FrozenSet[MissionStatus] = frozenset({
    MissionStatus.COMPLETED,
    MissionStatus.CANCELLED,
})

NON_TERMINAL_STATUSES: FrozenSet[MissionStatus] = frozenset(
    s for s in MissionStatus if s not in TERMINAL_STATUSES
)

# daily_rate_min / max figés une fois la proposition acceptée
RATE_LOCKED_STATUSES: FrozenSet[MissionStatus] = frozenset({
    MissionStatus.ANIMATOR_ACCEPTED,
    MissionStatus.CONFIRMED,
    MissionStatus.ASSIGNED,
    MissionStatus.IN_PROGRESS,
    MissionStatus.COMPLETED,
    MissionStatus.CANCELLED,
})

# start_date / end_date figées dès l'envoi de la proposition
SCHEDULE_LOCKED_STATUSES: FrozenSet[MissionStatus] = RATE_LOCKED_STATUSES | {MissionStatus.PROPOSAL_SENT}


# ── Table de transitions ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Transition:
    action: str
    sources: FrozenSet[MissionStatus]
    target: MissionStatus
    actors: FrozenSet[MissionActor]
    invalid_message: str


def _t(action, sources, target, actors, invalid_message) -> Transition:
    return Transition(action, frozenset(sources), target, frozenset(actors), invalid_message)


TRANSITIONS: Dict[str, Transition] = {
    t.action: t for t in (
        _t("publish",
           {MissionStatus.DRAFT}, MissionStatus.OPEN,
           {MissionActor.CLIENT},
           "Seul un brouillon peut être publié."),
        _t("send_proposal",
           {MissionStatus.OPEN}, MissionStatus.PROPOSAL_SENT,
           {MissionActor.CLIENT},
           "Une proposition ne peut être envoyée que pour une mission ouverte."),
        _t("accept_proposal",
           {MissionStatus.PROPOSAL_SENT}, MissionStatus.ANIMATOR_ACCEPTED,
           {MissionActor.ANIMATOR},
           "Cette mission n'attend plus votre réponse."),
        _t("decline_proposal",
           {MissionStatus.PROPOSAL_SENT}, MissionStatus.OPEN,
           {MissionActor.ANIMATOR},
           "Cette mission n'attend plus votre réponse."),
        _t("confirm",
           {MissionStatus.ANIMATOR_ACCEPTED}, MissionStatus.CONFIRMED,
           {MissionActor.CLIENT},
           "La mission doit avoir été acceptée par l'animateur avant confirmation."),
        _t("assign",
           {MissionStatus.OPEN}, MissionStatus.ASSIGNED,
           {MissionActor.CLIENT},
           "Seule une mission ouverte peut être assignée directement."),
        _t("start",
           {MissionStatus.CONFIRMED, MissionStatus.ASSIGNED}, MissionStatus.IN_PROGRESS,
           {MissionActor.CLIENT},
           "La mission doit être confirmée pour démarrer."),
        _t("complete",
           {MissionStatus.IN_PROGRESS}, MissionStatus.COMPLETED,
           {MissionActor.CLIENT},
           "Seule une mission en cours peut être terminée."),
        _t("cancel",
           NON_TERMINAL_STATUSES, MissionStatus.CANCELLED,
           {MissionActor.CLIENT, MissionActor.SYSTEM},
           "Cette mission est déjà terminée ou annulée."),
    )
}


# ── API ───────────────────────────────────────────────────────────────────────

def get_transition(action: str) -> Transition:
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise ValueError(f"Action inconnue : {action}")


def can_transition(action: str, current: MissionStatus) -> bool:
    return MissionStatus(current) in get_transition(action).sources


def assert_transition(action: str, current: MissionStatus, actor: MissionActor) -> Transition:
    """
    Vérifie acteur puis état source.
    Lève AccessDeniedError (mauvais acteur) ou InvalidTransitionError.
    """
    transition = get_transition(action)
    if actor not in transition.actors:
        raise AccessDeniedError("Accès refusé.")
    current = MissionStatus(current)
    if current not in transition.sources:
        raise InvalidTransitionError(
            transition.invalid_message, current=current, target=transition.target
        )
    return transition


def is_terminal(status: MissionStatus) -> bool:
    return MissionStatus(status) in TERMINAL_STATUSES


def rates_locked(status: MissionStatus) -> bool:
    return MissionStatus(status) in RATE_LOCKED_STATUSES


def schedule_locked(status: MissionStatus) -> bool:
    return MissionStatus(status) in SCHEDULE_LOCKED_STATUSES
