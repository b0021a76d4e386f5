"""Network connection profile loading."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError

DISCOVERY_AS_LOCALHOST_ENV_VAR = "DISCOVERY_AS_LOCALHOST"


class ProfileError(ValueError):
    """Raised when a connection profile is missing or malformed."""


class _ProfileModel(BaseModel):
    # Profiles generated by the network tooling carry TLS material, CA
    # sections and gRPC options this client never reads.
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PeerTimeouts(_ProfileModel):
    endorser: Optional[float] = Field(default=None, gt=0)


class ConnectionTimeouts(_ProfileModel):
    peer: Optional[PeerTimeouts] = None


class ClientConnection(_ProfileModel):
    timeout: Optional[ConnectionTimeouts] = None


class ClientSection(_ProfileModel):
    organization: Optional[str] = None
    connection: Optional[ClientConnection] = None


class OrganizationSection(_ProfileModel):
    mspid: str
    peers: List[str] = Field(default_factory=list)


class PeerSection(_ProfileModel):
    url: str


class ConnectionProfile(_ProfileModel):
    name: str
    version: Optional[str] = None
    client: Optional[ClientSection] = None
    organizations: Dict[str, OrganizationSection]
    peers: Dict[str, PeerSection] = Field(default_factory=dict)
    channels: Optional[Dict[str, Any]] = None

    @property
    def organization_name(self) -> str:
        if self.client is not None and self.client.organization:
            return self.client.organization
        if len(self.organizations) == 1:
            return next(iter(self.organizations))
        raise ProfileError("profile does not name a client organization")

    @property
    def organization(self) -> OrganizationSection:
        name = self.organization_name
        try:
            return self.organizations[name]
        except KeyError:
            raise ProfileError(f"client organization not defined in profile: {name}") from None

    @property
    def endorser_timeout(self) -> float | None:
        connection = self.client.connection if self.client else None
        timeout = connection.timeout if connection else None
        peer = timeout.peer if timeout else None
        return peer.endorser if peer else None

    def declares_channel(self, channel: str) -> bool:
        """Profiles without a ``channels`` section accept any channel name."""
        if self.channels is None:
            return True
        return channel in self.channels

    def peer_urls(self, *, as_localhost: bool = False) -> list[str]:
        urls: list[str] = []
        for peer_name in self.organization.peers:
            peer = self.peers.get(peer_name)
            if peer is None:
                raise ProfileError(f"peer not defined in profile: {peer_name}")
            urls.append(localhost_url(peer.url) if as_localhost else peer.url)
        return urls


def discovery_as_localhost() -> bool:
    raw = os.getenv(DISCOVERY_AS_LOCALHOST_ENV_VAR, "")
    return raw.strip().lower() in {"true", "1", "yes", "on"}


def localhost_url(url: str) -> str:
    """Replace the host of ``url`` with ``localhost``, keeping scheme and port."""
    if "://" not in url:
        _, sep, port = url.rpartition(":")
        return f"localhost:{port}" if sep and port.isdigit() else "localhost"
    parts = urlsplit(url)
    netloc = "localhost" if parts.port is None else f"localhost:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _parse_profile_text(path: Path, raw: str) -> Any:
    if path.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ProfileError(f"invalid YAML in {path}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProfileError(f"invalid JSON in {path}: {exc}") from exc


def load_connection_profile(path: str | Path) -> ConnectionProfile:
    profile_path = Path(path)
    try:
        raw = profile_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileError(f"cannot read connection profile: {profile_path}") from exc

    payload = _parse_profile_text(profile_path, raw)
    if not isinstance(payload, dict):
        raise ProfileError("connection profile must be a mapping")
    try:
        profile = ConnectionProfile.model_validate(payload)
    except ValidationError as exc:
        raise ProfileError(f"invalid connection profile {profile_path}: {exc}") from exc

    # Fail early on a profile whose client organization cannot be resolved.
    _ = profile.organization
    return profile
