"""fabcar client public surface."""

from fabcar_client.errors import (
    BootstrapFormatError,
    BootstrapIOError,
    ErrorKind,
    FabcarClientError,
    InputParseError,
    LedgerEvaluateError,
    LedgerRequestError,
    LedgerSubmitError,
    SessionConnectError,
)
from fabcar_client.gateway import Contract, Gateway, Network
from fabcar_client.output import format_json
from fabcar_client.profile import ConnectionProfile, ProfileError, load_connection_profile
from fabcar_client.wallet import FileSystemWallet, WalletError, X509Identity

__all__ = [
    "FabcarClientError",
    "ErrorKind",
    "BootstrapIOError",
    "BootstrapFormatError",
    "SessionConnectError",
    "LedgerRequestError",
    "LedgerSubmitError",
    "LedgerEvaluateError",
    "InputParseError",
    "Gateway",
    "Network",
    "Contract",
    "ConnectionProfile",
    "ProfileError",
    "load_connection_profile",
    "FileSystemWallet",
    "WalletError",
    "X509Identity",
    "format_json",
]
