from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.exceptions import PermissionDeniedError
from app.core.security import verify_token


@dataclass(frozen=True)
class Actor:
    id: str
    is_admin: bool = False


def actor_from_token(token: str) -> Actor:
    payload, error = verify_token(token)
    if error == "expired":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    elif error == "invalid":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Actor(id=str(subject), is_admin=bool(payload.get("is_admin", False)))


def get_current_actor(authorization: Optional[str] = Header(None)) -> Actor:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication scheme",
                headers={"WWW-Authenticate": "Bearer"},
            )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return actor_from_token(token)


def resolve_owner(actor: Actor, owner_id: Optional[str] = None) -> str:
    """The tree the actor addresses: their own unless an admin names another."""
    if owner_id is None or owner_id == actor.id:
        return actor.id
    if not actor.is_admin:
        raise PermissionDeniedError("You can only access your own files")
    return owner_id


def resolve_scope(actor: Actor, owner_id: Optional[str] = None) -> Optional[str]:
    """Like ``resolve_owner`` but an admin without ``owner_id`` sees every owner."""
    if actor.is_admin and owner_id is None:
        return None
    return resolve_owner(actor, owner_id)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError("Admin privileges required")
