"""MonkeyBets service exceptions.

Every exception carries a message that is safe to show to the player.
``status_code`` is the HTTP status the API answers with.
"""


class MonkeyBetsError(Exception):
    """Base MonkeyBets exception."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(MonkeyBetsError):
    """Input rejected before touching the store."""

    status_code = 422


class PropNotFound(MonkeyBetsError):
    """No prop with that id."""

    status_code = 404

    def __init__(self, prop_id: str):
        super().__init__("Prop not found")
        self.prop_id = prop_id


class PropUnavailable(MonkeyBetsError):
    """Prop was soft-deleted and the caller holds no stake in it."""

    status_code = 410

    def __init__(self, prop_id: str):
        super().__init__("This prop is no longer available")
        self.prop_id = prop_id


class PermissionDenied(MonkeyBetsError):
    """Caller is not allowed to act on this prop."""

    status_code = 403


class WagerRejected(MonkeyBetsError):
    """Prop is closed to wagers, or the bettor already has one."""

    status_code = 409


class ResultAlreadySet(MonkeyBetsError):
    """Result was settled already (possibly by a concurrent session)."""

    status_code = 409


class AccountNotFound(MonkeyBetsError):
    """Sign-in for a phone with no account."""

    status_code = 404


class PhoneAlreadyRegistered(MonkeyBetsError):
    """Sign-up for a phone that already has an account."""

    status_code = 409


class VerificationServiceError(MonkeyBetsError):
    """SMS provider failed or is not configured."""

    status_code = 502
