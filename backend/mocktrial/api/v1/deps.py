# mocktrial/api/v1/deps.py

from dataclasses import dataclass
from datetime import datetime

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import Case, UserType
from mocktrial.services import case_service
from mocktrial.utils.exceptions import CaseNotFoundError, ForbiddenError

security = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """Caller identity taken from the bearer token"""
    id: str
    user_type: str

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.admin.value


# ============================================================================
# JWT Dependency
# ============================================================================

def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    Validate the JWT and return who is calling.

    Tokens are issued by the auth service with ``sub`` (or ``user_id``) and
    ``user_type`` claims.
    """
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user_id = payload.get("user_id") or payload.get("sub")
    user_type = payload.get("user_type")
    if not user_id or user_type not in UserType._value2member_map_:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    exp = payload.get("exp")
    if exp and datetime.utcfromtimestamp(exp) < datetime.utcnow():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )

    return Principal(id=str(user_id), user_type=user_type)


def require_roles(*roles: str):
    """Dependency factory: only the listed user types get through."""
    allowed = set(roles)

    def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.user_type not in allowed:
            raise ForbiddenError()
        return principal

    return checker


require_admin = require_roles(UserType.admin.value)
require_attorney = require_roles(UserType.attorney.value)
require_juror = require_roles(UserType.juror.value)


def ensure_self_or_admin(principal: Principal, user_id: str) -> None:
    if not principal.is_admin and principal.id != str(user_id):
        raise ForbiddenError()


def load_case(db: Session, case_id: str, principal: Principal, allow_jurors: bool = False) -> Case:
    """
    Live case the caller may see: admins see all, attorneys their own,
    jurors only where ``allow_jurors`` is set.
    """
    case = case_service.get_case(db, case_id)
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if principal.is_admin:
        return case
    if principal.user_type == UserType.attorney.value and str(case.attorney_id) == principal.id:
        return case
    if principal.user_type == UserType.juror.value and allow_jurors:
        return case
    raise ForbiddenError()
