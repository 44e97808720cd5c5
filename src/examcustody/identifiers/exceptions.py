"""Exceptions raised while decoding scanned identifiers."""


class IdentifierError(Exception):
    """Base exception for identifier decoding errors."""


class InvalidTokenFormatError(IdentifierError):
    """Token is not valid base64-encoded JSON or lacks required fields."""


class TokenTypeMismatchError(IdentifierError):
    """Token decodes to a different identifier type than expected."""


class TamperDetectedError(IdentifierError):
    """Embedded security hash does not match the token contents."""


class TokenExpiredError(IdentifierError):
    """Token is older than the configured maximum age."""
