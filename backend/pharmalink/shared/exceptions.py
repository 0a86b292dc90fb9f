# pharmalink/shared/exceptions.py
"""
Erreurs métier typées.

Chaque erreur hérite du builtin que les routers savent déjà traduire
(ValueError, PermissionError, LookupError) et porte un `code` stable
que le front utilise pour choisir son message.
Le handler HTTP unique est enregistré dans main.py.
"""
from typing import Optional


class PharmaLinkError(Exception):
    code: str = "ERROR"
    status_code: int = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class DomainValidationError(PharmaLinkError, ValueError):
    """Champ manquant ou invalide, rejeté avant toute écriture."""
    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(PharmaLinkError, LookupError):
    code = "NOT_FOUND"
    status_code = 404


class AccessDeniedError(PharmaLinkError, PermissionError):
    code = "ACCESS_DENIED"
    status_code = 403


class ConflictError(PharmaLinkError, ValueError):
    code = "CONFLICT"
    status_code = 409


class DuplicateResponseError(ConflictError):
    code = "ALREADY_RESPONDED"

    def __init__(self, message: str = "Vous avez déjà répondu à cette alerte."):
        super().__init__(message)


class AlertClosedError(ConflictError):
    code = "ALERT_CLOSED"

    def __init__(self, message: str = "Cette alerte n'est plus active."):
        super().__init__(message)


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, current=None, target=None):
        super().__init__(message)
        self.current = current
        self.target = target


class QuotaExceededError(ConflictError):
    code = "QUOTA_REACHED"


class ArbitrationError(PharmaLinkError, RuntimeError):
    """Arbitrage d'acceptation non abouti après retries, à relancer."""
    code = "ARBITRATION_RETRY"
    status_code = 503
    retry_after_seconds = 2

    def __init__(self, message: str = "Sélection impossible pour le moment, réessayez."):
        super().__init__(message)
