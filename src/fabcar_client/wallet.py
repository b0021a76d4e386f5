"""File-system wallet holding X.509 identities keyed by label."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

IDENTITY_TYPE = "X.509"
IDENTITY_VERSION = 1
_FILE_SUFFIX = ".id"


class WalletError(ValueError):
    """Raised when a wallet entry cannot be stored or loaded."""


@dataclass(frozen=True)
class X509Identity:
    msp_id: str
    certificate: str
    private_key: str

    def to_dict(self) -> dict:
        return {
            "credentials": {
                "certificate": self.certificate,
                "privateKey": self.private_key,
            },
            "mspId": self.msp_id,
            "type": IDENTITY_TYPE,
            "version": IDENTITY_VERSION,
        }

    @classmethod
    def from_dict(cls, payload: object) -> "X509Identity":
        if not isinstance(payload, dict):
            raise WalletError("identity entry must be a JSON object")
        if payload.get("type") != IDENTITY_TYPE:
            raise WalletError(f"unsupported identity type: {payload.get('type')!r}")
        credentials = payload.get("credentials")
        if not isinstance(credentials, dict):
            raise WalletError("identity entry is missing credentials")
        certificate = credentials.get("certificate")
        private_key = credentials.get("privateKey")
        msp_id = payload.get("mspId")
        if not isinstance(certificate, str) or not isinstance(private_key, str):
            raise WalletError("credentials must contain certificate and privateKey")
        if not isinstance(msp_id, str) or not msp_id:
            raise WalletError("identity entry must contain mspId")
        return cls(msp_id=msp_id, certificate=certificate, private_key=private_key)


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


class FileSystemWallet:
    """Stores one ``<label>.id`` JSON file per identity under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WalletError(f"cannot create wallet directory: {self.root}") from exc

    def _path(self, label: str) -> Path:
        if not label or "/" in label or "\\" in label or label in {".", ".."}:
            raise WalletError(f"invalid identity label: {label!r}")
        return self.root / f"{label}{_FILE_SUFFIX}"

    def exists(self, label: str) -> bool:
        return self._path(label).is_file()

    def labels(self) -> list[str]:
        return sorted(p.name[: -len(_FILE_SUFFIX)] for p in self.root.glob(f"*{_FILE_SUFFIX}"))

    def put(self, label: str, identity: X509Identity) -> Path:
        path = self._path(label)
        try:
            path.write_text(json.dumps(identity.to_dict()), encoding="utf-8")
        except OSError as exc:
            raise WalletError(f"failed to write identity file: {path}") from exc
        _chmod_owner_only(path)
        logger.debug("stored identity %s in %s", label, self.root)
        return path

    def get(self, label: str) -> X509Identity:
        path = self._path(label)
        if not path.is_file():
            raise WalletError(f"identity not found in wallet: {label}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise WalletError(f"invalid identity file: {path}") from exc
        return X509Identity.from_dict(payload)
