"""Identity provider integration.

This module provides:
- Access token verification (HMAC-signed JWTs issued by the hosted provider)
- Admin determination from configured emails or token metadata
- An async client for password login and the provider's admin user API

The provider speaks the GoTrue REST dialect: ``/auth/v1/token`` for password
grants and ``/auth/v1/admin/users`` for user management.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from authlib.jose import JoseError, JsonWebToken

from barulogix.services.errors import (
    AuthError,
    EmailNotVerifiedError,
    InternalError,
    NotFoundError,
)

if TYPE_CHECKING:
    from barulogix.core.config import AuthSettings, IdentityProviderSettings

logger = logging.getLogger(__name__)

# Effectively permanent ban understood by the provider
BAN_DURATION = "876000h"
UNBAN_DURATION = "none"

USERS_PAGE_SIZE = 1000


@dataclass(frozen=True, slots=True)
class VerifiedToken:
    """Identity extracted from a valid access token."""

    user_id: uuid.UUID
    email: str | None
    is_admin: bool
    claims: dict[str, Any] = field(default_factory=dict)


def is_admin_identity(
    email: str | None,
    user_metadata: dict[str, Any] | None,
    admin_emails: list[str],
) -> bool:
    """An identity is admin when its email is configured or its metadata says so."""
    if email and email.strip().lower() in admin_emails:
        return True
    return bool((user_metadata or {}).get("is_admin"))


def decode_access_token(token: str, settings: AuthSettings) -> VerifiedToken:
    """Verify signature, expiry and audience of an access token.

    Args:
        token: Compact JWT from the Authorization header.
        settings: Token validation settings.

    Returns:
        The verified identity.

    Raises:
        AuthError: If the token is malformed, expired or badly signed, or
            verification is not configured.
    """
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        raise AuthError("Autenticación no configurada")

    claims_options: dict[str, Any] = {
        "sub": {"essential": True},
        "exp": {"essential": True},
    }
    if settings.jwt_audience:
        claims_options["aud"] = {"essential": True, "value": settings.jwt_audience}

    jwt = JsonWebToken([settings.jwt_algorithm])
    try:
        claims = jwt.decode(token, secret.encode("utf-8"), claims_options=claims_options)
        claims.validate(leeway=settings.leeway_seconds)
    except JoseError as e:
        logger.debug("Access token rejected: %s", e)
        raise AuthError("Token inválido", details=str(e)) from e
    except ValueError as e:
        raise AuthError("Token inválido") from e

    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError as e:
        raise AuthError(
            "Token inválido", details="El sujeto no es un identificador válido"
        ) from e

    email = claims.get("email")
    return VerifiedToken(
        user_id=user_id,
        email=email,
        is_admin=is_admin_identity(email, claims.get("user_metadata"), settings.admin_emails),
        claims=dict(claims),
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class IdentityUser:
    """User account as reported by the identity provider."""

    user_id: str
    email: str | None
    created_at: datetime | None
    last_sign_in_at: datetime | None
    email_confirmed_at: datetime | None
    banned: bool
    user_metadata: dict[str, Any] = field(default_factory=dict)
    app_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any], now: datetime | None = None) -> IdentityUser:
        """Build from a provider user object."""
        now = now or datetime.now(UTC)
        banned_until = _parse_timestamp(data.get("banned_until"))
        return cls(
            user_id=str(data.get("id", "")),
            email=data.get("email"),
            created_at=_parse_timestamp(data.get("created_at")),
            last_sign_in_at=_parse_timestamp(data.get("last_sign_in_at")),
            email_confirmed_at=_parse_timestamp(data.get("email_confirmed_at")),
            banned=banned_until is not None and banned_until > now,
            user_metadata=data.get("user_metadata") or {},
            app_metadata=data.get("app_metadata") or {},
        )


@dataclass(frozen=True, slots=True)
class UserStats:
    """Account counts shown on the admin dashboard."""

    total: int
    active: int
    banned: int
    confirmed: int

    @classmethod
    def from_users(cls, users: list[IdentityUser]) -> UserStats:
        banned = sum(1 for u in users if u.banned)
        return cls(
            total=len(users),
            active=len(users) - banned,
            banned=banned,
            confirmed=sum(1 for u in users if u.email_confirmed_at is not None),
        )


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Session issued by a successful password login."""

    access_token: str
    refresh_token: str | None
    expires_in: int | None
    user: IdentityUser


class IdentityProviderClient:
    """Async client for the hosted identity provider.

    Example usage:
        async with IdentityProviderClient(settings.identity) as client:
            result = await client.password_login(email, password)
            users = await client.list_users()
    """

    def __init__(
        self,
        settings: IdentityProviderSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Provider URL, keys and timeout.
            transport: Optional transport override (tests use MockTransport).
        """
        self._settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> IdentityProviderClient:
        """Enter async context manager."""
        if not self._settings.url:
            raise InternalError("Proveedor de identidad no configurado")
        self._client = httpx.AsyncClient(
            base_url=self._settings.url.rstrip("/"),
            timeout=self._settings.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not in context."""
        if self._client is None:
            msg = "IdentityProviderClient must be used as async context manager"
            raise RuntimeError(msg)
        return self._client

    def _admin_headers(self) -> dict[str, str]:
        key = self._settings.service_role_key.get_secret_value()
        if not key:
            raise InternalError("Proveedor de identidad no configurado")
        return {"apikey": key, "Authorization": f"Bearer {key}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._get_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable: %s", e)
            raise InternalError("Proveedor de identidad no disponible", details=str(e)) from e

    async def password_login(self, email: str, password: str) -> LoginResult:
        """Exchange email and password for a session.

        Raises:
            EmailNotVerifiedError: If the account email is not confirmed.
            AuthError: If the credentials are rejected.
            InternalError: If the provider fails or is unreachable.
        """
        email = email.strip().lower()
        anon_key = self._settings.anon_key.get_secret_value()
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers={"apikey": anon_key} if anon_key else None,
        )

        if response.status_code in (400, 401, 403):
            body = _json_or_empty(response)
            reason = " ".join(
                str(body.get(key, ""))
                for key in ("error_code", "error", "msg", "error_description")
            ).lower()
            if "email_not_confirmed" in reason or "email not confirmed" in reason:
                logger.info("Login refused: email not verified")
                raise EmailNotVerifiedError(
                    "Tu email aún no está verificado",
                    details=(
                        "Revisa tu bandeja de entrada y haz clic en el enlace de verificación."
                    ),
                )
            raise AuthError("Credenciales inválidas")
        if response.is_error:
            raise InternalError(
                "Error de autenticación", details={"status": response.status_code}
            )

        body = response.json()
        return LoginResult(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
            user=IdentityUser.from_payload(body.get("user") or {}),
        )

    async def list_users(self) -> list[IdentityUser]:
        """All accounts known to the provider.

        Raises:
            InternalError: If the provider fails or is unreachable.
        """
        users: list[IdentityUser] = []
        page = 1
        now = datetime.now(UTC)
        while True:
            response = await self._request(
                "GET",
                "/auth/v1/admin/users",
                params={"page": page, "per_page": USERS_PAGE_SIZE},
                headers=self._admin_headers(),
            )
            if response.is_error:
                raise InternalError(
                    "Error al obtener usuarios", details={"status": response.status_code}
                )
            batch = response.json().get("users") or []
            users.extend(IdentityUser.from_payload(item, now) for item in batch)
            if len(batch) < USERS_PAGE_SIZE:
                return users
            page += 1

    async def set_banned(self, user_id: str, banned: bool) -> IdentityUser:
        """Ban (effectively permanently) or unban an account.

        Raises:
            NotFoundError: If the account does not exist.
            InternalError: If the provider fails or is unreachable.
        """
        response = await self._request(
            "PUT",
            f"/auth/v1/admin/users/{user_id}",
            json={"ban_duration": BAN_DURATION if banned else UNBAN_DURATION},
            headers=self._admin_headers(),
        )
        if response.status_code == 404:
            raise NotFoundError("Usuario no encontrado", details={"user_id": user_id})
        if response.is_error:
            raise InternalError(
                "Error al actualizar usuario", details={"status": response.status_code}
            )
        logger.info("User %s", "banned" if banned else "unbanned", extra={"user_id": user_id})
        return IdentityUser.from_payload(response.json())

    async def delete_user(self, user_id: str) -> None:
        """Delete an account.

        Raises:
            NotFoundError: If the account does not exist.
            InternalError: If the provider fails or is unreachable.
        """
        response = await self._request(
            "DELETE",
            f"/auth/v1/admin/users/{user_id}",
            headers=self._admin_headers(),
        )
        if response.status_code == 404:
            raise NotFoundError("Usuario no encontrado", details={"user_id": user_id})
        if response.is_error:
            raise InternalError(
                "Error al eliminar usuario", details={"status": response.status_code}
            )
        logger.info("User deleted", extra={"user_id": user_id})


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
