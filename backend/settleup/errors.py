"""Domain errors raised by the settlement core.

The HTTP layer maps each of these to a status code (see ``main.py``); nothing
in the core retries on them.
"""


class SettlementError(Exception):
    status_code = 400


class NotFound(SettlementError):
    status_code = 404


class Forbidden(SettlementError):
    status_code = 403


class InvalidState(SettlementError):
    status_code = 409


class ValidationError(SettlementError):
    status_code = 400


class UpstreamUnavailable(SettlementError):
    status_code = 503

    def __init__(self, from_currency: str, to_currency: str, reason: str = ""):
        self.from_currency = from_currency
        self.to_currency = to_currency
        message = f"Failed to fetch FX rate {from_currency}→{to_currency}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
