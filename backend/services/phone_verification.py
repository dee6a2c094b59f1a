"""
SMS one-time-code verification via Twilio Verify.

    send_code(phone)         - text a code to the phone
    check_code(phone, code)  - True if Twilio approves the code

Provider errors are logged in full but surfaced to players only as
generic VerificationServiceError messages.

Not configured (no TWILIO_* variables):
    ENVIRONMENT=development → any 6-digit code is accepted, with a warning
    otherwise               → VerificationServiceError (503)
"""

import logging
import os
import re
from typing import Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from backend.core.phone import normalize_phone
from backend.services.exceptions import ValidationFailed, VerificationServiceError
from backend.services.identity import mask_phone

logger = logging.getLogger(__name__)

_DEV_CODE = re.compile(r"^\d{6}$")


class PhoneVerifier:
    """Thin wrapper over the Twilio Verify v2 service."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        verify_sid: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid or os.getenv("TWILIO_ACCOUNT_SID")
        self.auth_token = auth_token or os.getenv("TWILIO_AUTH_TOKEN")
        self.verify_sid = verify_sid or os.getenv("TWILIO_VERIFY_SID")
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.verify_sid and (self._client or (self.account_sid and self.auth_token)))

    def _service(self):
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client.verify.v2.services(self.verify_sid)

    @staticmethod
    def _normalized(phone: str) -> str:
        try:
            return normalize_phone(phone)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from exc

    @staticmethod
    def _require_dev_mode() -> None:
        if os.getenv("ENVIRONMENT") != "development":
            raise VerificationServiceError(
                "Phone verification is unavailable right now", status_code=503
            )
        logger.warning("Twilio Verify not configured — development mode accepts any 6-digit code")

    def send_code(self, phone: str) -> None:
        phone = self._normalized(phone)

        if not self.configured:
            self._require_dev_mode()
            return

        try:
            self._service().verifications.create(to=phone, channel="sms")
        except (TwilioException, requests.RequestException) as exc:
            logger.error("Twilio send-code failed for %s: %s", mask_phone(phone), exc, exc_info=True)
            raise VerificationServiceError(
                "Failed to send verification code. Please check your phone number and try again."
            ) from exc

        logger.info("Verification code sent to %s", mask_phone(phone))

    def check_code(self, phone: str, code: str) -> bool:
        phone = self._normalized(phone)
        code = (code or "").strip()

        if not self.configured:
            self._require_dev_mode()
            return bool(_DEV_CODE.match(code))

        try:
            check = self._service().verification_checks.create(to=phone, code=code)
        except TwilioRestException as exc:
            if exc.status == 404:
                # No pending verification: code expired, used, or never sent
                logger.info("No pending verification for %s", mask_phone(phone))
                return False
            logger.error("Twilio check-code failed for %s: %s", mask_phone(phone), exc, exc_info=True)
            raise VerificationServiceError("Failed to verify code. Please try again.") from exc
        except (TwilioException, requests.RequestException) as exc:
            logger.error("Twilio check-code failed for %s: %s", mask_phone(phone), exc, exc_info=True)
            raise VerificationServiceError("Failed to verify code. Please try again.") from exc

        approved = check.status == "approved"
        logger.info("Verification for %s: %s", mask_phone(phone), check.status)
        return approved


_verifier: Optional[PhoneVerifier] = None


def get_phone_verifier() -> PhoneVerifier:
    """Process-wide verifier, built lazily from the environment."""
    global _verifier
    if _verifier is None:
        _verifier = PhoneVerifier()
    return _verifier
