from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from inquaire.core.auth import AuthUser, get_current_user
from inquaire.core.config import get_settings
from inquaire.core.rbac import require_system_admin
from inquaire.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str] | None]:
    return {
        "sub": user.sub,
        "email": user.email,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(_: AuthUser = Depends(require_system_admin)) -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
