"""Admin endpoints (role-scoped: admin, super_admin)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from lexauth.api.guard import AuthContext, require_admin
from lexauth.core.errors import ValidationError
from lexauth.schemas.auth import ApiResponse
from lexauth.services.container import ServiceContainer, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.delete("/accounts/{account_id}", response_model=ApiResponse[None])
def delete_account(
    account_id: int,
    admin: Annotated[AuthContext, Depends(require_admin)],
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> ApiResponse[None]:
    """Soft-delete an account. Its tokens stop verifying immediately."""
    if account_id == admin.user_id:
        raise ValidationError("Administrators cannot delete their own account")
    services.auth.soft_delete(account_id)
    logger.info("Account id=%s deleted by admin id=%s", account_id, admin.user_id)
    return ApiResponse(message="Account deleted")
