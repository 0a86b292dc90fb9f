# backend/pharmalink/core/security.py
"""
Vérification des JWT émis par le fournisseur d'authentification.

Le claim `sub` porte l'id utilisateur. Aucun mot de passe n'est géré ici.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from pharmalink.core.config import settings


def create_access_token(subject: Any, expires_minutes: Optional[int] = None) -> str:
    """Utilisé par les outils internes et les tests d'intégration."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(subject), "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Lève jose.JWTError si la signature ou l'expiration est invalide."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
