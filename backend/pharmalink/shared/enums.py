# pharmalink/shared/enums.py
"""
Toutes les énumérations du projet PharmaLink.

Source unique de vérité pour les statuts, rôles et types.
Importé par les modèles, schemas, services et engine.
Les valeurs sont celles stockées en base (chaînes françaises d'origine).
"""

from enum import Enum

class UserType(str, Enum):
    TITULAIRE   = "titulaire"      # Pharmacien titulaire (recruteur)
    LABORATOIRE = "laboratoire"    # Laboratoire (recruteur)
    PREPARATEUR = "preparateur"
    CONSEILLER  = "conseiller"
    ETUDIANT    = "etudiant"
    ANIMATEUR   = "animateur"      # Freelance


class CreatorType(str, Enum):
    PHARMACY   = "pharmacy"
    LABORATORY = "laboratory"


class PositionType(str, Enum):
    PREPARATEUR = "preparateur"
    CONSEILLER  = "conseiller"
    ETUDIANT    = "etudiant"
    ANIMATEUR   = "animateur"


class AlertStatus(str, Enum):
    ACTIVE    = "active"
    FILLED    = "filled"
    EXPIRED   = "expired"
    CANCELLED = "cancelled"


class ResponseStatus(str, Enum):
    INTERESTED = "interested"
    ACCEPTED   = "accepted"
    REJECTED   = "rejected"


class MissionStatus(str, Enum):
    DRAFT             = "draft"
    OPEN              = "open"
    PROPOSAL_SENT     = "proposal_sent"
    ANIMATOR_ACCEPTED = "animator_accepted"
    CONFIRMED         = "confirmed"
    ASSIGNED          = "assigned"
    IN_PROGRESS       = "in_progress"
    COMPLETED         = "completed"
    CANCELLED         = "cancelled"


class MissionActor(str, Enum):
    CLIENT   = "client"
    ANIMATOR = "animator"
    SYSTEM   = "system"


class SubscriptionTier(str, Enum):
    FREE     = "free"
    STARTER  = "starter"     # Laboratoires uniquement
    PRO      = "pro"
    BUSINESS = "business"
    PREMIUM  = "premium"     # Candidats / animateurs


class AvailabilityStatus(str, Enum):
    BOOKED = "booked"


class NotificationType(str, Enum):
    URGENT_ALERT       = "urgent_alert"
    ALERT_RESPONSE     = "alert_response"
    ALERT_ACCEPTED     = "alert_accepted"
    MISSION_PROPOSAL   = "mission_proposal"
    MISSION_ACCEPTED   = "mission_accepted"
    MISSION_DECLINED   = "mission_declined"
    MISSION_CONFIRMED  = "mission_confirmed"
    MISSION_COMPLETED  = "mission_completed"
    MISSION_CANCELLED  = "mission_cancelled"


RECRUITER_TYPES = (UserType.TITULAIRE, UserType.LABORATOIRE)


def creator_type_for(user_type: UserType) -> CreatorType:
    """Titulaire → pharmacy, laboratoire → laboratory. Tout autre rôle est refusé."""
    if user_type == UserType.TITULAIRE:
        return CreatorType.PHARMACY
    if user_type == UserType.LABORATOIRE:
        return CreatorType.LABORATORY
    raise ValueError(f"Le rôle {user_type.value} ne peut pas créer d'alerte ni de mission.")
