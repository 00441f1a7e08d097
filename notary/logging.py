# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Log handler setup with credential redaction.

Library modules log at DEBUG through ``logging.getLogger(__name__)`` and
never log the errors they raise.  Only entry points install handlers, via
``configure_logging()``.

Two kinds of credential are redacted from every record that reaches an
installed handler, without any registration:

* PEM private key blocks (PKCS#1 and PKCS#8)
* The ``Signature`` query parameter of signed URLs, which grants access
  to the object until the URL expires

Further literal strings can be added per filter with ``RedactingFilter.add``.
"""

import logging
import re
from collections.abc import Iterable
from typing import IO


REDACTED = "[REDACTED]"

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_PEM_PRIVATE_KEY_RE = re.compile(
    r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----"
    r".*?"
    r"-----END (?:[A-Z]+ )?PRIVATE KEY-----",
    re.DOTALL,
)

_URL_SIGNATURE_RE = re.compile(r"(?<=[?&]Signature=)[^&\s\"']+")


class RedactingFilter(logging.Filter):
    """Rewrites log records so credentials never reach the output.

    Records are modified in place and never dropped.

    Args:
        secrets: Literal strings to redact in addition to the built-in
            patterns.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets: set[str] = set()
        self._literal: re.Pattern[str] | None = None
        for secret in secrets:
            self.add(secret)

    def add(self, secret: str) -> None:
        """Redact ``secret`` from now on.  Empty strings are ignored."""
        if not secret or secret in self._secrets:
            return
        self._secrets.add(secret)
        # Longest first so a secret containing another is fully replaced
        ordered = sorted(self._secrets, key=len, reverse=True)
        self._literal = re.compile("|".join(map(re.escape, ordered)))

    def redact(self, text: str) -> str:
        text = _PEM_PRIVATE_KEY_RE.sub(REDACTED, text)
        text = _URL_SIGNATURE_RE.sub(REDACTED, text)
        if self._literal is not None:
            text = self._literal.sub(REDACTED, text)
        return text

    def _redact_arg(self, arg: object) -> object:
        return self.redact(arg) if isinstance(arg, str) else arg

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(self._redact_arg(a) for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {
                k: self._redact_arg(v) for k, v in record.args.items()
            }
        return True


def configure_logging(
    verbose: bool = False,
    *,
    stream: IO[str] | None = None,
    format_string: str = DEFAULT_FORMAT,
    secrets: Iterable[str] = (),
) -> RedactingFilter:
    """Send log output to ``stream`` (stderr by default) with redaction.

    Replaces any handlers already on the root logger, so calling this
    twice does not duplicate output.

    Args:
        verbose: Log at DEBUG instead of WARNING.
        stream: Destination stream.
        format_string: ``logging.Formatter`` format.
        secrets: Extra literal strings to redact.

    Returns:
        The filter installed on the handler, for adding secrets later.
    """
    redactor = RedactingFilter(secrets)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(format_string))
    handler.addFilter(redactor)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return redactor
