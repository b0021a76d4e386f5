"""Configuration helpers for the fabcar CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("fabcar.toml")
DEFAULT_ORG = "org1"
DEFAULT_CHANNEL = "mychannel"
DEFAULT_CHAINCODE = "basic"
DEFAULT_WALLET_DIR = "wallet"
DEFAULT_NETWORK_ROOT = str(Path("..") / "test-network")
DEFAULT_GATEWAY_BASE = "http://localhost:3000"
ORG_ENV_VAR = "FABCAR_ORG"
GATEWAY_BASE_ENV_VAR = "FABCAR_GATEWAY_BASE"


@dataclass(frozen=True)
class ClientConfig:
    org: str = DEFAULT_ORG
    channel: str = DEFAULT_CHANNEL
    chaincode: str = DEFAULT_CHAINCODE
    wallet_dir: str = DEFAULT_WALLET_DIR
    network_root: str = DEFAULT_NETWORK_ROOT
    gateway_base: str = DEFAULT_GATEWAY_BASE
    timeout: float | None = None
    retries: int = 2

    @property
    def org_domain(self) -> str:
        return f"{self.org}.example.com"

    @property
    def identity_label(self) -> str:
        return f"User1@{self.org_domain}"

    @property
    def msp_id(self) -> str:
        return f"{self.org[:1].upper()}{self.org[1:]}MSP"

    @property
    def org_root(self) -> Path:
        return Path(self.network_root) / "organizations" / "peerOrganizations" / self.org_domain

    @property
    def profile_path(self) -> Path:
        return self.org_root / f"connection-{self.org}.json"

    def with_org(self, org: str | None) -> "ClientConfig":
        if org is None:
            return self
        org = org.strip()
        if not org:
            raise ConfigError("org must not be empty")
        return replace(self, org=org)


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _to_str(source: dict[str, Any], key: str, default: str) -> str:
    value = str(source.get(key, default)).strip()
    if not value:
        raise ConfigError(f"{key} must not be empty")
    return value


def _to_timeout(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError("timeout must be a positive number")
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError("timeout must be a positive number") from exc
    if timeout <= 0:
        raise ConfigError("timeout must be a positive number")
    return timeout


def _to_retries(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError("retries must be a non-negative integer")
    return value


def load_client_config(path: str | Path | None = None) -> ClientConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed: dict[str, Any] = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("client")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[client] must be a table")

    env_org = os.getenv(ORG_ENV_VAR)
    org = env_org.strip() if env_org and env_org.strip() else _to_str(source, "org", DEFAULT_ORG)

    env_gateway_base = os.getenv(GATEWAY_BASE_ENV_VAR)
    configured_gateway_base = _to_str(source, "gateway_base", DEFAULT_GATEWAY_BASE)
    gateway_base = (
        env_gateway_base.strip()
        if env_gateway_base and env_gateway_base.strip()
        else configured_gateway_base
    )
    if not gateway_base.startswith(("http://", "https://")):
        raise ConfigError("gateway_base must be an http(s) URL")

    return ClientConfig(
        org=org,
        channel=_to_str(source, "channel", DEFAULT_CHANNEL),
        chaincode=_to_str(source, "chaincode", DEFAULT_CHAINCODE),
        wallet_dir=_to_str(source, "wallet_dir", DEFAULT_WALLET_DIR),
        network_root=_to_str(source, "network_root", DEFAULT_NETWORK_ROOT),
        gateway_base=gateway_base,
        timeout=_to_timeout(source.get("timeout")),
        retries=_to_retries(source.get("retries", 2)),
    )
