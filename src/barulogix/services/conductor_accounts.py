"""Driver portal accounts.

Conductors register with the id their warehouse gave them, confirm their
email through a link and then log in with email and password to get a
driver session token. Driver tokens are signed with their own secret and
carry ``type: conductor``, so they are never valid on warehouse routes and
warehouse tokens are never valid here.

Flow:
1. register: account created unverified, verification link emailed
2. verify_email: link token consumed, account marked verified
3. login: verified accounts of active conductors get a session token
4. request_password_reset / reset_password: one hour reset link
"""

from __future__ import annotations

import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
from authlib.jose import JoseError, JsonWebToken
from sqlalchemy import or_, select

from barulogix.db.models.conductor_accounts import ConductorAccount
from barulogix.db.models.conductors import Conductor
from barulogix.services.errors import (
    AuthError,
    ConflictError,
    EmailNotVerifiedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from barulogix.services.store import StoreService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from barulogix.core.config import PortalSettings
    from barulogix.services.mailer import ConductorMailer

logger = logging.getLogger(__name__)

TOKEN_TYPE = "conductor"
TOKEN_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_SESSION = "Token inválido o expirado"
PASSWORD_RESET_SENT = (
    "Si el email existe en nuestro sistema, recibirás un correo con instrucciones "
    "para restablecer tu contraseña."
)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    """Bcrypt hash of ``password``; bcrypt only reads the first 72 bytes."""
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """True when ``password`` matches the stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def password_problems(password: str) -> list[str]:
    """Unmet password rules, empty when the password is acceptable."""
    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    if not re.search(r"[a-z]", password):
        problems.append("La contraseña debe contener al menos una letra minúscula")
    if not re.search(r"[A-Z]", password):
        problems.append("La contraseña debe contener al menos una letra mayúscula")
    if not re.search(r"\d", password):
        problems.append("La contraseña debe contener al menos un número")
    return problems


def normalize_email(email: str | None) -> str:
    """Trimmed, lower-cased email.

    Raises:
        ValidationError: If the address is not shaped like an email.
    """
    normalized = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Formato de email inválido")
    return normalized


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConductorIdentity:
    """Driver extracted from a valid session token."""

    conductor_id: uuid.UUID
    email: str


def _secret(settings: PortalSettings) -> bytes:
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        raise AuthError("Autenticación no configurada")
    return secret.encode("utf-8")


def issue_conductor_token(
    conductor_id: uuid.UUID,
    email: str,
    settings: PortalSettings,
    now: datetime | None = None,
) -> str:
    """Sign a driver session token valid for ``settings.token_ttl_hours``."""
    now = now or datetime.now(UTC)
    claims = {
        "sub": str(conductor_id),
        "email": email,
        "type": TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.token_ttl_hours)).timestamp()),
    }
    token = JsonWebToken([TOKEN_ALGORITHM]).encode(
        {"alg": TOKEN_ALGORITHM}, claims, _secret(settings)
    )
    return token.decode("ascii")


def decode_conductor_token(token: str, settings: PortalSettings) -> ConductorIdentity:
    """Verify a driver session token.

    Raises:
        AuthError: If the token is malformed, expired, badly signed or not a
            driver token.
    """
    claims_options: dict[str, Any] = {
        "sub": {"essential": True},
        "exp": {"essential": True},
        "type": {"essential": True, "value": TOKEN_TYPE},
    }
    jwt = JsonWebToken([TOKEN_ALGORITHM])
    try:
        claims = jwt.decode(token, _secret(settings), claims_options=claims_options)
        claims.validate()
        conductor_id = uuid.UUID(str(claims["sub"]))
    except JoseError as e:
        logger.debug("Driver token rejected: %s", e)
        raise AuthError(INVALID_SESSION, details=str(e)) from e
    except ValueError as e:
        raise AuthError(INVALID_SESSION) from e

    return ConductorIdentity(conductor_id=conductor_id, email=str(claims.get("email") or ""))


def _new_token() -> str:
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Account service
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """Created account and whether the verification email went out."""

    account: ConductorAccount
    email_sent: bool


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Session token issued for an account."""

    token: str
    account: ConductorAccount


class ConductorAccountService(StoreService):
    """Registration, verification, login and password reset of drivers."""

    def __init__(
        self,
        session: AsyncSession,
        settings: PortalSettings,
        mailer: ConductorMailer,
    ) -> None:
        super().__init__(session)
        self._settings = settings
        self._mailer = mailer

    async def _find_one(self, *criteria: Any) -> ConductorAccount | None:
        result = await self._execute(select(ConductorAccount).where(*criteria).limit(1))
        return result.scalar_one_or_none()

    async def register(
        self,
        conductor_id: uuid.UUID | None,
        email: str | None,
        password: str | None,
        now: datetime | None = None,
    ) -> RegistrationResult:
        """Create an unverified account for an existing conductor.

        Raises:
            ValidationError: If a field is missing, the email is malformed or
                the password is too weak.
            NotFoundError: If the conductor id does not exist.
            ConflictError: If the email or the conductor already has an account.
        """
        if conductor_id is None or not email or not password:
            raise ValidationError("Conductor ID, email y contraseña son requeridos")
        email = normalize_email(email)
        problems = password_problems(password)
        if problems:
            raise ValidationError(problems[0], details=problems)

        result = await self._execute(
            select(Conductor).where(Conductor.conductor_id == conductor_id)
        )
        conductor = result.scalar_one_or_none()
        if conductor is None:
            raise NotFoundError(
                "Conductor ID no encontrado. Verifica con tu administrador.",
                details={"conductor_id": str(conductor_id)},
            )

        existing = await self._find_one(
            or_(ConductorAccount.email == email, ConductorAccount.conductor_id == conductor_id)
        )
        if existing is not None:
            if existing.email == email:
                raise ConflictError("Este email ya está registrado para un conductor")
            raise ConflictError("Este conductor ya tiene una cuenta registrada")

        now = now or datetime.now(UTC)
        token = _new_token()
        account = ConductorAccount(
            conductor_id=conductor.conductor_id,
            conductor=conductor,
            email=email,
            password_hash=hash_password(password),
            email_verified=False,
            verification_token=token,
            verification_token_expires=now + timedelta(hours=self._settings.verification_ttl_hours),
        )
        self._session.add(account)
        await self._commit()

        sent = await self._mailer.send_verification(
            to_email=email, conductor_name=conductor.name, token=token
        )
        logger.info(
            "Conductor account registered",
            extra={"conductor_id": str(conductor_id), "email_sent": sent.success},
        )
        return RegistrationResult(account=account, email_sent=sent.success)

    async def verify_email(self, token: str | None, now: datetime | None = None) -> None:
        """Consume a verification token.

        Raises:
            ValidationError: If the token is missing, unknown or expired.
        """
        if not token or not token.strip():
            raise ValidationError("Token de verificación no proporcionado")

        account = await self._find_one(ConductorAccount.verification_token == token.strip())
        if account is None:
            raise ValidationError("Token de verificación inválido o expirado")
        now = now or datetime.now(UTC)
        expires = account.verification_token_expires
        if expires is not None and expires < now:
            raise ValidationError("Token de verificación expirado")

        account.email_verified = True
        account.verification_token = None
        account.verification_token_expires = None
        account.updated_at = now
        await self._commit()
        logger.info("Conductor email verified", extra={"conductor_id": str(account.conductor_id)})

    async def login(
        self, email: str | None, password: str | None, now: datetime | None = None
    ) -> LoginResult:
        """Exchange credentials for a driver session token.

        Raises:
            ValidationError: If a field is missing or the email is malformed.
            AuthError: If the credentials do not match.
            EmailNotVerifiedError: If the account email is not confirmed.
            ForbiddenError: If the conductor was deactivated.
        """
        if not email or not password:
            raise ValidationError("Email y contraseña son requeridos")
        email = normalize_email(email)

        account = await self._find_one(ConductorAccount.email == email)
        if account is None or not verify_password(password, account.password_hash):
            logger.warning("Driver login rejected")
            raise AuthError("Credenciales inválidas")
        if not account.email_verified:
            raise EmailNotVerifiedError(
                "Por favor, verifica tu email antes de iniciar sesión."
            )
        if not account.conductor.active:
            raise ForbiddenError("Conductor inactivo")

        token = issue_conductor_token(account.conductor_id, account.email, self._settings, now)
        logger.info("Driver logged in", extra={"conductor_id": str(account.conductor_id)})
        return LoginResult(token=token, account=account)

    async def request_password_reset(
        self, email: str | None, now: datetime | None = None
    ) -> None:
        """Email a reset link when a verified account uses ``email``.

        Unknown and unverified addresses are ignored silently so the caller
        cannot tell which emails are registered.

        Raises:
            ValidationError: If the email is missing or malformed.
        """
        if not email:
            raise ValidationError("Email es requerido")
        email = normalize_email(email)

        account = await self._find_one(
            ConductorAccount.email == email, ConductorAccount.email_verified.is_(True)
        )
        if account is None:
            logger.info("Password reset requested for unknown email")
            return

        now = now or datetime.now(UTC)
        account.reset_token = _new_token()
        account.reset_token_expires = now + timedelta(minutes=self._settings.reset_ttl_minutes)
        account.updated_at = now
        await self._commit()

        await self._mailer.send_password_reset(
            to_email=account.email,
            conductor_name=account.conductor.name,
            token=account.reset_token,
        )

    async def reset_password(
        self, token: str | None, password: str | None, now: datetime | None = None
    ) -> None:
        """Set a new password using a reset token.

        Raises:
            ValidationError: If a field is missing, the password too short or
                the token unknown or expired.
        """
        if not token or not password:
            raise ValidationError("Token y contraseña son requeridos")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
            )

        account = await self._find_one(ConductorAccount.reset_token == token.strip())
        if account is None:
            raise ValidationError("Token de restablecimiento inválido")
        now = now or datetime.now(UTC)
        expires = account.reset_token_expires
        if expires is not None and expires < now:
            raise ValidationError("El token de restablecimiento ha expirado")

        account.password_hash = hash_password(password)
        account.reset_token = None
        account.reset_token_expires = None
        account.updated_at = now
        await self._commit()
        logger.info("Driver password reset", extra={"conductor_id": str(account.conductor_id)})

    async def get_for_conductor(self, conductor_id: uuid.UUID) -> ConductorAccount:
        """Account of an authenticated driver.

        Raises:
            AuthError: If the account no longer exists.
            ForbiddenError: If the conductor was deactivated.
        """
        account = await self._find_one(ConductorAccount.conductor_id == conductor_id)
        if account is None:
            raise AuthError(INVALID_SESSION, details="Cuenta de conductor no encontrada")
        if not account.conductor.active:
            raise ForbiddenError("Conductor inactivo")
        return account
