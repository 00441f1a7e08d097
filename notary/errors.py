# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception taxonomy for notary.

Every error raised by the package derives from ``NotaryError`` so callers
can catch the whole family in one place.  Nothing here is retried
internally; errors surface to the caller as soon as they occur.
"""


class NotaryError(Exception):
    """Base exception for all notary errors."""


class KeyUnavailableError(NotaryError):
    """Raised when the key material provider cannot supply key bytes.

    Attributes:
        source_id: Identifier of the key that could not be read.
    """

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"Key unavailable ({source_id}): {message}")
        self.source_id = source_id


class KeyParseError(NotaryError):
    """Raised when key bytes are not a PEM-encoded RSA private key.

    Attributes:
        source_id: Identifier of the key that failed to parse.
    """

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"Invalid private key ({source_id}): {message}")
        self.source_id = source_id


class SigningError(NotaryError):
    """Raised when the RSA signing operation fails."""


class RequestValidationError(NotaryError, ValueError):
    """Raised when signing parameters are rejected before signing."""


class ConfigError(NotaryError):
    """Raised for missing or malformed configuration."""
