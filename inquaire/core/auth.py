import uuid
from dataclasses import dataclass, field

from fastapi import Depends
from jose import ExpiredSignatureError, JWTError, jwt
from starlette.requests import Request

from inquaire.context import set_user_id
from inquaire.core.config import get_settings
from inquaire.core.errors import BusinessException, ErrorCode

ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str]
    email: str | None = None
    claims: dict[str, object] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.sub != ANONYMOUS

    @property
    def user_id(self) -> uuid.UUID:
        try:
            return uuid.UUID(self.sub)
        except ValueError as exc:
            raise BusinessException(ErrorCode.AUTH_INVALID_TOKEN, "Token subject is not a user id") from exc


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise BusinessException(ErrorCode.AUTH_TOKEN_EXPIRED) from exc
    except JWTError as exc:
        raise BusinessException(ErrorCode.AUTH_INVALID_TOKEN) from exc

    subject = payload.get("sub")
    if not subject:
        raise BusinessException(ErrorCode.AUTH_INVALID_TOKEN)
    role = payload.get("role", "USER")
    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = str(subject)
    set_user_id(str(subject))
    return AuthUser(sub=str(subject), roles=[str(role)], email=payload.get("email"), claims=payload)


async def get_authenticated_user(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_authenticated:
        raise BusinessException(ErrorCode.AUTH_REQUIRED)
    return user
