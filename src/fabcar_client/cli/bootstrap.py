"""Wallet bootstrap from the network's credential directory layout."""

from __future__ import annotations

import logging
from pathlib import Path

from fabcar_client.cli.config import ClientConfig
from fabcar_client.errors import BootstrapFormatError, BootstrapIOError
from fabcar_client.wallet import FileSystemWallet, WalletError, X509Identity

logger = logging.getLogger(__name__)


def credential_dir(config: ClientConfig) -> Path:
    return config.org_root / "users" / config.identity_label / "msp"


def _read_bytes(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise BootstrapIOError(f"cannot read {what}: {path}: {exc.strerror or exc}") from exc


def _decode_pem(raw: bytes, path: Path) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BootstrapFormatError(f"credential file is not PEM text: {path}") from exc


def find_key_file(keystore: Path) -> Path:
    try:
        entries = sorted(keystore.iterdir())
    except OSError as exc:
        raise BootstrapIOError(
            f"cannot list keystore directory: {keystore}: {exc.strerror or exc}"
        ) from exc
    if len(entries) != 1:
        raise BootstrapFormatError(
            f"expected exactly one key file in {keystore}, found {len(entries)}"
        )
    return entries[0]


def populate_wallet(wallet: FileSystemWallet, config: ClientConfig) -> X509Identity:
    msp_dir = credential_dir(config)

    cert_path = msp_dir / "signcerts" / "cert.pem"
    cert = _read_bytes(cert_path, "certificate")

    key_path = find_key_file(msp_dir / "keystore")
    key = _read_bytes(key_path, "private key")

    identity = X509Identity(
        msp_id=config.msp_id,
        certificate=_decode_pem(cert, cert_path),
        private_key=_decode_pem(key, key_path),
    )
    try:
        wallet.put(config.identity_label, identity)
    except WalletError as exc:
        raise BootstrapIOError(str(exc)) from exc
    logger.debug("populated wallet with %s from %s", config.identity_label, msp_dir)
    return identity


def ensure_identity(wallet: FileSystemWallet, config: ClientConfig) -> bool:
    """Populate the wallet unless the label is already present.

    Returns True when a new entry was written.
    """
    if wallet.exists(config.identity_label):
        logger.debug(
            "wallet %s already holds %s (labels: %s)",
            wallet.root,
            config.identity_label,
            ", ".join(wallet.labels()),
        )
        return False
    populate_wallet(wallet, config)
    return True
