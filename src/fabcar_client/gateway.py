"""Gateway session: connection, channel and contract handles."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from fabcar_client.errors import (
    LedgerEvaluateError,
    LedgerRequestError,
    LedgerSubmitError,
    SessionConnectError,
)
from fabcar_client.profile import (
    ConnectionProfile,
    ProfileError,
    discovery_as_localhost,
    load_connection_profile,
)
from fabcar_client.wallet import FileSystemWallet, WalletError, X509Identity

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
MSP_ID_HEADER = "x-fabric-msp-id"
CERTIFICATE_HEADER = "x-fabric-certificate"
SIGNATURE_HEADER = "x-fabric-signature"


def canonical_body(payload: dict) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def _load_signing_key(identity: X509Identity) -> ec.EllipticCurvePrivateKey:
    try:
        key = serialization.load_pem_private_key(
            identity.private_key.encode("utf-8"), password=None
        )
    except (ValueError, TypeError) as exc:
        raise SessionConnectError(f"identity private key is not a usable PEM key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise SessionConnectError("identity private key must be an ECDSA key")
    return key


def _error_detail(response: Any) -> object | None:
    try:
        body = response.json()
    except Exception:
        return None
    if isinstance(body, dict):
        return body.get("detail") or body.get("message")
    return None


@dataclass
class Gateway:
    base_url: str
    identity: X509Identity
    profile: ConnectionProfile
    timeout: float = DEFAULT_TIMEOUT
    retries: int = 2
    as_localhost: bool = False
    _closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self._signing_key = _load_signing_key(self.identity)
        try:
            self._endorsing_peers = self.profile.peer_urls(as_localhost=self.as_localhost)
        except ProfileError as exc:
            raise SessionConnectError(str(exc)) from exc

        self._session = requests.Session()
        # Read and status retries apply to GET only, so a transaction that
        # reached the gateway is never sent twice.
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    @classmethod
    def connect(
        cls,
        *,
        wallet: FileSystemWallet,
        label: str,
        profile_path: str | Path,
        gateway_base: str,
        timeout: float | None = None,
        retries: int = 2,
    ) -> "Gateway":
        try:
            identity = wallet.get(label)
        except WalletError as exc:
            raise SessionConnectError(f"cannot load identity {label}: {exc}") from exc
        try:
            profile = load_connection_profile(profile_path)
        except ProfileError as exc:
            raise SessionConnectError(str(exc)) from exc

        resolved_timeout = timeout or profile.endorser_timeout or DEFAULT_TIMEOUT
        gateway = cls(
            base_url=gateway_base,
            identity=identity,
            profile=profile,
            timeout=resolved_timeout,
            retries=retries,
            as_localhost=discovery_as_localhost(),
        )
        logger.debug(
            "connected to %s as %s (msp=%s, timeout=%s)",
            gateway_base,
            label,
            identity.msp_id,
            resolved_timeout,
        )
        return gateway

    def __enter__(self) -> "Gateway":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._session.close()
        self._closed = True
        logger.debug("gateway session closed")

    @property
    def endorsing_peers(self) -> list[str]:
        return list(self._endorsing_peers)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self, body: bytes = b"") -> dict[str, str]:
        signature = self._signing_key.sign(body, ec.ECDSA(hashes.SHA256()))
        return {
            "content-type": "application/json",
            MSP_ID_HEADER: self.identity.msp_id,
            CERTIFICATE_HEADER: base64.b64encode(self.identity.certificate.encode("utf-8")).decode(
                "ascii"
            ),
            SIGNATURE_HEADER: base64.b64encode(signature).decode("ascii"),
        }

    def get_network(self, channel: str) -> "Network":
        if not channel:
            raise SessionConnectError("channel name must not be empty")
        if not self.profile.declares_channel(channel):
            raise SessionConnectError(f"channel not defined in connection profile: {channel}")

        path = f"/v1/channels/{quote(channel, safe='')}"
        try:
            response = self._session.request(
                "GET",
                self._url(path),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SessionConnectError(f"failed to get network {channel}: {exc}") from exc
        if response.status_code >= 400:
            detail = _error_detail(response)
            raise SessionConnectError(
                f"failed to get network {channel}: {response.status_code} {detail or response.text}"
            )
        logger.debug("resolved channel %s", channel)
        return Network(gateway=self, name=channel)

    def _transact(
        self,
        mode: str,
        *,
        channel: str,
        chaincode: str,
        function: str,
        args: tuple[str, ...],
        error_cls: type[LedgerRequestError],
    ) -> bytes:
        body = canonical_body(
            {
                "function": function,
                "args": list(args),
                "endorsing_peers": self._endorsing_peers,
            }
        )
        path = (
            f"/v1/channels/{quote(channel, safe='')}"
            f"/chaincodes/{quote(chaincode, safe='')}/{mode}"
        )
        logger.debug("%s %s on %s/%s with %d args", mode, function, channel, chaincode, len(args))
        try:
            response = self._session.request(
                "POST",
                self._url(path),
                data=body,
                headers=self._headers(body),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise error_cls(f"gateway unavailable: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            if isinstance(detail, str):
                message = f"gateway request failed: {response.status_code} {detail}"
            else:
                message = f"gateway request failed: {response.status_code} {response.text}"
            raise error_cls(message, status_code=response.status_code, detail=detail)
        return response.content


@dataclass(frozen=True)
class Network:
    gateway: Gateway
    name: str

    def get_contract(self, name: str) -> "Contract":
        if not name:
            raise SessionConnectError("contract name must not be empty")
        return Contract(network=self, name=name)


@dataclass(frozen=True)
class Contract:
    network: Network
    name: str

    def submit_transaction(self, function: str, *args: str) -> bytes:
        """Endorse, order and commit ``function``; returns the transaction result."""
        return self.network.gateway._transact(
            "submit",
            channel=self.network.name,
            chaincode=self.name,
            function=function,
            args=args,
            error_cls=LedgerSubmitError,
        )

    def evaluate_transaction(self, function: str, *args: str) -> bytes:
        """Query ``function`` against current ledger state without committing."""
        return self.network.gateway._transact(
            "evaluate",
            channel=self.network.name,
            chaincode=self.name,
            function=function,
            args=args,
            error_cls=LedgerEvaluateError,
        )
