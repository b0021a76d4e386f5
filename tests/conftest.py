from __future__ import annotations

import json
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)

CERT_PEM = (
    "-----BEGIN CERTIFICATE-----\n"
    "MIICKTCCAdCgAwIBAgIQTestCertificateForUser1Org1\n"
    "-----END CERTIFICATE-----\n"
)


def profile_payload(org: str = "org1") -> dict:
    title = f"{org[:1].upper()}{org[1:]}"
    peer = f"peer0.{org}.example.com"
    return {
        "name": f"test-network-{org}",
        "version": "1.0.0",
        "client": {
            "organization": title,
            "connection": {"timeout": {"peer": {"endorser": "300"}}},
        },
        "organizations": {
            title: {
                "mspid": f"{title}MSP",
                "peers": [peer],
                "certificateAuthorities": [f"ca.{org}.example.com"],
            }
        },
        "peers": {
            peer: {
                "url": f"grpcs://{peer}:7051",
                "tlsCACerts": {"pem": "-----BEGIN CERTIFICATE-----\n..."},
                "grpcOptions": {"ssl-target-name-override": peer, "hostnameOverride": peer},
            }
        },
        "certificateAuthorities": {
            f"ca.{org}.example.com": {"url": "https://localhost:7054", "caName": f"ca-{org}"}
        },
    }


@pytest.fixture
def private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def key_pem(private_key) -> str:
    return private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("ascii")


@pytest.fixture
def make_network(tmp_path, key_pem):
    """Build the test-network credential layout for ``org`` under tmp_path."""

    def _make(org: str = "org1", *, key_files: int = 1, with_cert: bool = True) -> Path:
        root = tmp_path / "test-network"
        org_root = root / "organizations" / "peerOrganizations" / f"{org}.example.com"
        msp = org_root / "users" / f"User1@{org}.example.com" / "msp"
        (msp / "signcerts").mkdir(parents=True, exist_ok=True)
        (msp / "keystore").mkdir(parents=True, exist_ok=True)
        if with_cert:
            (msp / "signcerts" / "cert.pem").write_text(CERT_PEM, encoding="utf-8")
        for index in range(key_files):
            (msp / "keystore" / f"{index:02d}_sk").write_text(key_pem, encoding="utf-8")
        (org_root / f"connection-{org}.json").write_text(
            json.dumps(profile_payload(org)), encoding="utf-8"
        )
        return root

    return _make
