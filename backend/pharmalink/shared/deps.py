# pharmalink/shared/deps.py
"""
Dépendances FastAPI réutilisables dans tous les routers.
Injectées via Depends(), jamais appelées directement.

Les deps de rôle s'appuient toutes sur get_current_user : en test,
surcharger get_current_user suffit pour authentifier un client.
"""
import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pharmalink.core.config import settings
from pharmalink.core.database import get_db
from pharmalink.core.security import decode_token
from pharmalink.shared.enums import UserType, RECRUITER_TYPES
from pharmalink.shared.models import User

bearer = HTTPBearer()

CANDIDATE_TYPES = (UserType.PREPARATEUR, UserType.CONSEILLER, UserType.ETUDIANT)


async def _get_user_from_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token invalide ou expiré",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(credentials.credentials)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(
        select(User)
        .options(
            selectinload(User.notification_preference),
            selectinload(User.animator_profile),
        )
        .where(User.id == int(user_id))
    )
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise credentials_exception
    return user


# ── Deps publiques ─────────────────────────────────────────

async def get_current_user(
    user: Annotated[User, Depends(_get_user_from_token)],
) -> User:
    """Utilisateur authentifié (tout rôle)."""
    return user


async def get_current_creator(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Titulaire ou laboratoire : seuls rôles autorisés à publier alertes et missions."""
    if user.user_type not in RECRUITER_TYPES:
        raise HTTPException(status_code=403, detail="Accès recruteur requis")
    return user


async def get_current_candidate(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if user.user_type not in CANDIDATE_TYPES:
        raise HTTPException(status_code=403, detail="Accès candidat requis")
    return user


async def get_current_animator(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if user.user_type != UserType.ANIMATEUR:
        raise HTTPException(status_code=403, detail="Accès animateur requis")
    return user


async def get_current_responder(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Candidat ou animateur : peut répondre à une alerte."""
    if user.user_type not in CANDIDATE_TYPES + (UserType.ANIMATEUR,):
        raise HTTPException(status_code=403, detail="Accès candidat requis")
    return user


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Tâches planifiées : Authorization: Bearer <CRON_SECRET>."""
    expected = settings.CRON_SECRET
    if not expected or not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


# ── Type aliases pour les routers ─────────────────────────
DbDep        = Annotated[AsyncSession, Depends(get_db)]
UserDep      = Annotated[User, Depends(get_current_user)]
CreatorDep   = Annotated[User, Depends(get_current_creator)]
CandidateDep = Annotated[User, Depends(get_current_candidate)]
AnimatorDep  = Annotated[User, Depends(get_current_animator)]
ResponderDep = Annotated[User, Depends(get_current_responder)]
CronDep      = Annotated[None, Depends(verify_cron_secret)]
