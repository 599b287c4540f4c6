"""One-time passwords for email verification.

Issuing a code replaces any earlier code for the same email. A code is valid
for ``STOREFRONT_OTP_EXPIRY_SECONDS`` (300 by default) and is consumed by a
successful verification. Delivering the code by email is left to whatever
subscribes to ``OtpIssued``.
"""

import secrets
from datetime import UTC, datetime, timedelta

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.domain import storefront
from storefront.utils.queries import fetch_all

logger = structlog.get_logger(__name__)

CODE_LENGTH = 6


def _normalize(email: str) -> str:
    return email.strip().lower()


def _as_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


@storefront.event(part_of="OneTimePassword")
class OtpIssued:
    """A verification code was generated and is waiting to be delivered."""

    __version__ = 1

    otp_id = Identifier(required=True)
    email = String(required=True)
    code = String(required=True)
    expires_at = DateTime(required=True)


@storefront.aggregate
class OneTimePassword:
    email = String(required=True, max_length=254)
    code = String(required=True, max_length=CODE_LENGTH)
    created_at = DateTime(required=True)

    @classmethod
    def issue(cls, email, code):
        otp = cls(email=_normalize(email), code=code, created_at=datetime.now(UTC))
        otp.raise_(
            OtpIssued(
                otp_id=str(otp.id),
                email=otp.email,
                code=code,
                expires_at=otp.expires_at,
            )
        )
        return otp

    @property
    def expires_at(self) -> datetime:
        return _as_utc(self.created_at) + timedelta(seconds=settings.otp_expiry_seconds())

    def seconds_remaining(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        elapsed = (now - _as_utc(self.created_at)).total_seconds()
        return max(0, int(settings.otp_expiry_seconds() - elapsed))

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.seconds_remaining(now) <= 0


@storefront.repository(part_of=OneTimePassword)
class OneTimePasswordRepository:
    def for_email(self, email) -> list[OneTimePassword]:
        return fetch_all(self._dao.query.filter(email=_normalize(email)))

    def latest_for_email(self, email) -> OneTimePassword | None:
        codes = self.for_email(email)
        return max(codes, key=lambda otp: _as_utc(otp.created_at)) if codes else None

    def code_in_use(self, code) -> bool:
        return self._dao.query.filter(code=code).all().first is not None


def generate_code(in_use) -> str:
    """A random numeric code that ``in_use`` does not already know about."""
    while True:
        code = "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))
        if not in_use(code):
            return code


@storefront.command(part_of="OneTimePassword")
class IssueOtp:
    email = String(required=True, max_length=254)


@storefront.command(part_of="OneTimePassword")
class VerifyOtp:
    email = String(required=True, max_length=254)
    code = String(required=True, max_length=CODE_LENGTH)


@storefront.command_handler(part_of=OneTimePassword)
class OneTimePasswordCommandHandler:
    @handle(IssueOtp)
    def issue_otp(self, command: IssueOtp) -> dict:
        repo = current_domain.repository_for(OneTimePassword)
        for previous in repo.for_email(command.email):
            repo._dao.delete(previous)

        otp = OneTimePassword.issue(command.email, generate_code(repo.code_in_use))
        repo.add(otp)

        logger.info("OTP issued", email=otp.email, expires_at=otp.expires_at.isoformat())
        return {"email": otp.email, "expires_at": otp.expires_at}

    @handle(VerifyOtp)
    def verify_otp(self, command: VerifyOtp) -> bool:
        repo = current_domain.repository_for(OneTimePassword)
        otp = repo.latest_for_email(command.email)

        if otp is None or otp.code != command.code.strip():
            raise ValidationError({"code": ["Invalid OTP"]})
        if otp.is_expired():
            raise ValidationError({"code": ["OTP has expired"]})

        repo._dao.delete(otp)
        logger.info("OTP verified", email=otp.email)
        return True


def otp_time_remaining(email) -> dict:
    otp = current_domain.repository_for(OneTimePassword).latest_for_email(email)
    if otp is None:
        raise ObjectNotFoundError({"email": [f"No OTP issued for {email}"]})
    return {"time_remaining": otp.seconds_remaining(), "expires_at": otp.expires_at}
