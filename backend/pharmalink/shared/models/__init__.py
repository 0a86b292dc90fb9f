# pharmalink/shared/models/__init__.py
"""
Point d'entrée unique pour tous les modèles SQLAlchemy.

TOUJOURS importer les modèles depuis ce fichier :
  from pharmalink.shared.models import User, UrgentAlert, Mission, ...

→ Garantit que tous les modèles sont enregistrés dans Base.metadata
  avant la création des tables (Alembic, create_all).
"""

from pharmalink.shared.models.User         import User, NotificationPreference, AnimatorProfile
from pharmalink.shared.models.Alert        import UrgentAlert, UrgentAlertResponse
from pharmalink.shared.models.Mission      import Mission, AnimatorAvailability
from pharmalink.shared.models.Subscription import Subscription, MonthlyUsage
from pharmalink.shared.models.Notification import Notification, PushToken

__all__ = [
    # User
    "User", "NotificationPreference", "AnimatorProfile",
    # Alertes urgentes
    "UrgentAlert",
    "UrgentAlertResponse",
    # Missions
    "Mission",
    "AnimatorAvailability",
    # Abonnement
    "Subscription",
    "MonthlyUsage",
    # Notifications
    "Notification",
    "PushToken",
]
