from __future__ import annotations

import base64
import json
import types

import pytest
import requests
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat

from conftest import CERT_PEM, profile_payload
from fabcar_client.errors import (
    ErrorKind,
    LedgerEvaluateError,
    LedgerSubmitError,
    SessionConnectError,
)
from fabcar_client.gateway import Gateway
from fabcar_client.profile import load_connection_profile
from fabcar_client.wallet import FileSystemWallet, X509Identity

LABEL = "User1@org1.example.com"


def _response(status_code: int = 200, content: bytes = b"", body: object | None = None):
    def _json():
        if body is None:
            raise ValueError("no json body")
        return body

    return types.SimpleNamespace(
        status_code=status_code,
        content=content,
        text=content.decode("utf-8"),
        json=_json,
    )


class _Recorder:
    def __init__(self, response=None, exc: Exception | None = None) -> None:
        self.calls: list[dict] = []
        self.response = response if response is not None else _response()
        self.exc = exc

    def __call__(self, method, url, *, data=None, headers=None, timeout=None):  # noqa: ANN001
        self.calls.append(
            {"method": method, "url": url, "data": data, "headers": headers, "timeout": timeout}
        )
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def profile(tmp_path):
    path = tmp_path / "connection-org1.json"
    path.write_text(json.dumps(profile_payload()), encoding="utf-8")
    return load_connection_profile(path)


@pytest.fixture
def gateway(profile, key_pem):
    identity = X509Identity(msp_id="Org1MSP", certificate=CERT_PEM, private_key=key_pem)
    gw = Gateway(
        base_url="http://gateway.test/",
        identity=identity,
        profile=profile,
        timeout=5.0,
        as_localhost=True,
    )
    yield gw
    gw.close()


def test_submit_posts_signed_transaction(gateway, monkeypatch, private_key) -> None:
    recorder = _Recorder(_response(content=b""))
    monkeypatch.setattr(gateway._session, "request", recorder)

    contract = gateway.get_network("mychannel").get_contract("basic")
    recorder.calls.clear()
    result = contract.submit_transaction("TransferCarAsset", "CAR1", "P2", "true")

    assert result == b""
    (call,) = recorder.calls
    assert call["method"] == "POST"
    assert call["url"] == "http://gateway.test/v1/channels/mychannel/chaincodes/basic/submit"
    assert call["timeout"] == 5.0
    assert json.loads(call["data"]) == {
        "function": "TransferCarAsset",
        "args": ["CAR1", "P2", "true"],
        "endorsing_peers": ["grpcs://localhost:7051"],
    }

    headers = call["headers"]
    assert headers["x-fabric-msp-id"] == "Org1MSP"
    assert base64.b64decode(headers["x-fabric-certificate"]).decode("utf-8") == CERT_PEM
    private_key.public_key().verify(
        base64.b64decode(headers["x-fabric-signature"]),
        call["data"],
        ec.ECDSA(hashes.SHA256()),
    )


def test_evaluate_returns_response_bytes(gateway, monkeypatch) -> None:
    payload = b'{"ID":"CAR1","color":"blue"}'
    recorder = _Recorder(_response(content=payload))
    monkeypatch.setattr(gateway._session, "request", recorder)

    contract = gateway.get_network("mychannel").get_contract("basic")
    assert contract.evaluate_transaction("ReadCarAsset", "CAR1") == payload
    assert recorder.calls[-1]["url"].endswith("/chaincodes/basic/evaluate")


def test_get_network_resolves_channel_with_get(gateway, monkeypatch) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(gateway._session, "request", recorder)

    network = gateway.get_network("mychannel")

    assert network.name == "mychannel"
    assert recorder.calls[0]["method"] == "GET"
    assert recorder.calls[0]["url"] == "http://gateway.test/v1/channels/mychannel"


def test_get_network_failure_is_session_error(gateway, monkeypatch) -> None:
    recorder = _Recorder(_response(404, b"missing", {"detail": "channel not found"}))
    monkeypatch.setattr(gateway._session, "request", recorder)

    with pytest.raises(SessionConnectError, match="channel not found") as excinfo:
        gateway.get_network("nochannel")
    assert excinfo.value.fatal is True


def test_undeclared_channel_fails_before_any_request(tmp_path, key_pem, monkeypatch) -> None:
    payload = profile_payload()
    payload["channels"] = {"mychannel": {}}
    path = tmp_path / "closed.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    identity = X509Identity(msp_id="Org1MSP", certificate=CERT_PEM, private_key=key_pem)
    gw = Gateway(
        base_url="http://gateway.test",
        identity=identity,
        profile=load_connection_profile(path),
    )
    recorder = _Recorder()
    monkeypatch.setattr(gw._session, "request", recorder)

    with pytest.raises(SessionConnectError, match="otherchannel"):
        gw.get_network("otherchannel")
    assert recorder.calls == []


def test_submit_error_status_raises_submit_error(gateway, monkeypatch) -> None:
    monkeypatch.setattr(gateway._session, "request", _Recorder())
    contract = gateway.get_network("mychannel").get_contract("basic")

    monkeypatch.setattr(
        gateway._session,
        "request",
        _Recorder(_response(500, b"boom", {"detail": "the car CAR9 does not exist"})),
    )
    with pytest.raises(LedgerSubmitError) as excinfo:
        contract.submit_transaction("RepairCar", "CAR9")

    assert excinfo.value.kind is ErrorKind.LEDGER_SUBMIT
    assert excinfo.value.fatal is False
    assert excinfo.value.status_code == 500
    assert str(excinfo.value) == "gateway request failed: 500 the car CAR9 does not exist"


def test_evaluate_transport_error_raises_evaluate_error(gateway, monkeypatch) -> None:
    monkeypatch.setattr(gateway._session, "request", _Recorder())
    contract = gateway.get_network("mychannel").get_contract("basic")

    failure = requests.ConnectionError("connection refused")
    monkeypatch.setattr(gateway._session, "request", _Recorder(exc=failure))
    with pytest.raises(LedgerEvaluateError, match="gateway unavailable") as excinfo:
        contract.evaluate_transaction("ReadCarAsset", "CAR1")

    assert excinfo.value.cause is failure


def test_context_manager_closes_session(gateway, monkeypatch) -> None:
    closed: list[bool] = []
    monkeypatch.setattr(gateway._session, "close", lambda: closed.append(True))

    with gateway:
        pass
    gateway.close()

    assert closed == [True]


def test_connect_loads_identity_and_profile(tmp_path, key_pem, monkeypatch) -> None:
    monkeypatch.setenv("DISCOVERY_AS_LOCALHOST", "true")
    profile_path = tmp_path / "connection-org1.json"
    profile_path.write_text(json.dumps(profile_payload()), encoding="utf-8")
    wallet = FileSystemWallet(tmp_path / "wallet")
    wallet.put(LABEL, X509Identity(msp_id="Org1MSP", certificate=CERT_PEM, private_key=key_pem))

    with Gateway.connect(
        wallet=wallet,
        label=LABEL,
        profile_path=profile_path,
        gateway_base="http://gateway.test",
    ) as gw:
        assert gw.identity.msp_id == "Org1MSP"
        assert gw.timeout == 300.0
        assert gw.endorsing_peers == ["grpcs://localhost:7051"]


def test_connect_without_wallet_identity_fails(tmp_path) -> None:
    profile_path = tmp_path / "connection-org1.json"
    profile_path.write_text(json.dumps(profile_payload()), encoding="utf-8")

    with pytest.raises(SessionConnectError, match="cannot load identity"):
        Gateway.connect(
            wallet=FileSystemWallet(tmp_path / "wallet"),
            label=LABEL,
            profile_path=profile_path,
            gateway_base="http://gateway.test",
        )


def test_connect_with_missing_profile_fails(tmp_path, key_pem) -> None:
    wallet = FileSystemWallet(tmp_path / "wallet")
    wallet.put(LABEL, X509Identity(msp_id="Org1MSP", certificate=CERT_PEM, private_key=key_pem))

    with pytest.raises(SessionConnectError, match="connection profile"):
        Gateway.connect(
            wallet=wallet,
            label=LABEL,
            profile_path=tmp_path / "absent.json",
            gateway_base="http://gateway.test",
        )


def test_non_ecdsa_key_is_rejected(profile) -> None:
    ed_key = Ed25519PrivateKey.generate().private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    )
    identity = X509Identity(
        msp_id="Org1MSP", certificate=CERT_PEM, private_key=ed_key.decode("ascii")
    )
    with pytest.raises(SessionConnectError, match="ECDSA"):
        Gateway(base_url="http://gateway.test", identity=identity, profile=profile)


def test_garbage_key_is_rejected(profile) -> None:
    identity = X509Identity(msp_id="Org1MSP", certificate=CERT_PEM, private_key="not a key")
    with pytest.raises(SessionConnectError, match="PEM"):
        Gateway(base_url="http://gateway.test", identity=identity, profile=profile)
