from inquaire.platform.identity.models import RefreshToken, User
from inquaire.platform.identity.schemas import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
    TokenResponse,
    UserRead,
)

__all__ = [
    "User",
    "RefreshToken",
    "SignupRequest",
    "LoginRequest",
    "TokenResponse",
    "LoginResponse",
    "UserRead",
]
