"""Authentication API router.

Password login is delegated to the identity provider; the returned access
token is then sent as a Bearer token on every other route.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from barulogix.api.dependencies import AppSettings, CurrentUser, IdentityClient
from barulogix.api.schemas.auth import LoginRequest, LoginResponse, LoginUser, MeResponse
from barulogix.services.identity import is_admin_identity

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check for auth namespace."""
    return {"status": "healthy", "namespace": "auth"}


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in with email and password",
    responses={
        401: {
            "description": (
                "Invalid credentials, or unverified email (code EMAIL_NOT_VERIFIED)"
            )
        },
    },
)
async def login(
    request: LoginRequest,
    client: IdentityClient,
    settings: AppSettings,
) -> LoginResponse:
    result = await client.password_login(request.email, request.password)
    user = result.user
    logger.info("User logged in", extra={"user_id": user.user_id})
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
        user=LoginUser(
            id=user.user_id,
            email=user.email,
            is_admin=is_admin_identity(
                user.email, user.user_metadata, settings.auth.admin_emails
            ),
        ),
    )


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current user",
    responses={401: {"description": "Authentication required"}},
)
async def me(user: CurrentUser) -> MeResponse:
    return MeResponse(id=user.owner_id, email=user.email, is_admin=user.is_admin)
