"""Client error types."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    BOOTSTRAP_IO = "bootstrap-io"
    BOOTSTRAP_FORMAT = "bootstrap-format"
    SESSION_CONNECT = "session-connect"
    LEDGER_SUBMIT = "ledger-submit"
    LEDGER_EVALUATE = "ledger-evaluate"
    INPUT_PARSE = "input-parse"


_FATAL_KINDS = frozenset(
    {ErrorKind.BOOTSTRAP_IO, ErrorKind.BOOTSTRAP_FORMAT, ErrorKind.SESSION_CONNECT}
)


class FabcarClientError(RuntimeError):
    """Base client error.

    Subclasses pin ``kind``; the underlying exception is chained with
    ``raise ... from cause`` and exposed through :attr:`cause`.
    """

    kind: ErrorKind

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__

    @property
    def fatal(self) -> bool:
        """Startup errors abort the process; the rest return to the menu."""
        return self.kind in _FATAL_KINDS


class BootstrapIOError(FabcarClientError):
    """Credential files or the wallet could not be read or written."""

    kind = ErrorKind.BOOTSTRAP_IO


class BootstrapFormatError(FabcarClientError):
    """Credential layout does not match the expected convention."""

    kind = ErrorKind.BOOTSTRAP_FORMAT


class SessionConnectError(FabcarClientError):
    """Gateway connection, channel or contract could not be resolved."""

    kind = ErrorKind.SESSION_CONNECT


class LedgerRequestError(FabcarClientError):
    """Gateway rejected or failed a transaction request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class LedgerSubmitError(LedgerRequestError):
    kind = ErrorKind.LEDGER_SUBMIT


class LedgerEvaluateError(LedgerRequestError):
    kind = ErrorKind.LEDGER_EVALUATE


class InputParseError(FabcarClientError, ValueError):
    """Interactive input could not be converted to a transaction argument."""

    kind = ErrorKind.INPUT_PARSE
