"""
HTTP-level tests for the Relying Party service.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from service_relying_party.app.caching.transactional_cache import InMemoryTransactionalCache
from service_relying_party.app.domain.models import OTPChallenge, Platform
from service_relying_party.app.main import RelyingPartyService
from shared.errors import BackendCallError

from support import TRANSACTION_ID, make_clients


@pytest.fixture
def clients():
    clients = make_clients(Platform.ISV)
    clients.users.generate_otp.return_value = OTPChallenge(
        transaction_id=TRANSACTION_ID,
        correlation="1234",
        expiry=datetime.now(timezone.utc) + timedelta(seconds=300),
    )
    return clients


@pytest.fixture
def service(config, clients):
    return RelyingPartyService(
        config,
        http=httpx.AsyncClient(),
        cache=InMemoryTransactionalCache(),
        clients=clients,
    )


@pytest.fixture
def client(service):
    with TestClient(service.app) as test_client:
        yield test_client


class TestRelyingPartyService:
    """Service wiring and common endpoints."""

    def test_service_initialization(self, service, config):
        assert service.service_name == "relying_party"
        assert service.config is config
        assert service.orchestrator.platform is Platform.ISV
        assert service.orchestrator.issuer == "https://rp.example.com"
        assert service.app.state.relying_party_service is service

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "Welcome to the IBM Security Verify Relying Party Server"

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "relying_party"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "ok"}

    def test_metrics_endpoint(self, client):
        client.post("/v1/authenticate", json={"username": "john@citizen.com", "password": "a1b2c3d4"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'backend_calls_total{operation="authenticate",outcome="ok"} 1.0' in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        response = client.get("/")

        assert response.headers["X-Request-ID"]


class TestAuthenticateEndpoint:
    """POST /v1/authenticate"""

    def test_success(self, client, clients):
        response = client.post("/v1/authenticate", json={"username": "john@citizen.com", "password": "a1b2c3d4"})

        assert response.status_code == 200
        assert response.json() == {"access_token": "password-token", "token_type": "Bearer", "expires_in": 3600}
        clients.auth_tokens.password_grant.assert_awaited_once_with("john@citizen.com", "a1b2c3d4")

    def test_email_accepted_as_username(self, client, clients):
        response = client.post("/v1/authenticate", json={"email": "john@citizen.com", "password": "a1b2c3d4"})

        assert response.status_code == 200
        clients.auth_tokens.password_grant.assert_awaited_once_with("john@citizen.com", "a1b2c3d4")

    def test_rejected_password_keeps_backend_status(self, client, clients):
        clients.auth_tokens.password_grant.side_effect = BackendCallError(
            "isv.token", "password returned 400", status_code=400, details={"error": "invalid_grant"}
        )

        response = client.post("/v1/authenticate", json={"username": "john@citizen.com", "password": "wrong"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "BACKEND_CALL_FAILED"
        assert data["details"] == {"error": "invalid_grant"}

    def test_backend_outage_is_bad_gateway(self, client, clients):
        clients.auth_tokens.password_grant.side_effect = BackendCallError("isv.token", "password request failed")

        response = client.post("/v1/authenticate", json={"username": "john@citizen.com", "password": "a1b2c3d4"})

        assert response.status_code == 502

    def test_missing_password_is_validation_error(self, client, clients):
        response = client.post("/v1/authenticate", json={"username": "john@citizen.com"})

        assert response.status_code == 422
        clients.auth_tokens.password_grant.assert_not_awaited()


class TestSignupFlow:
    """POST /v1/signup and /v1/validate"""

    def test_signup_returns_challenge(self, client):
        response = client.post("/v1/signup", json={"name": "John Citizen", "email": "john@citizen.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["transactionId"] == TRANSACTION_ID
        assert data["correlation"] == "1234"
        assert "expiry" in data

    def test_signup_rejects_invalid_email(self, client, clients):
        response = client.post("/v1/signup", json={"name": "John Citizen", "email": "not-an-email"})

        assert response.status_code == 422
        clients.users.generate_otp.assert_not_awaited()

    def test_signup_then_validate(self, client, clients):
        client.post("/v1/signup", json={"name": "John Citizen", "email": "john@citizen.com"})

        response = client.post("/v1/validate", json={"transactionId": TRANSACTION_ID, "otp": "123456"})

        assert response.status_code == 200
        assert response.json()["access_token"] == "user-token"

        replay = client.post("/v1/validate", json={"transactionId": TRANSACTION_ID, "otp": "123456"})
        assert replay.status_code == 400
        assert replay.json()["code"] == "CHALLENGE_EXPIRED"
        assert clients.users.verify_user.await_count == 1

    def test_validate_unknown_transaction(self, client, clients):
        response = client.post(
            "/v1/validate",
            json={"transactionId": "unknown", "otp": "123456"},
            headers={"X-Request-ID": "req-456"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "CHALLENGE_EXPIRED"
        assert data["message"] == "Unable to parse one-time password identifier."
        assert data["trace_id"] == "req-456"
        clients.users.verify_user.assert_not_awaited()


class TestFIDO2Endpoints:
    """POST /v1/challenge, /v1/register and /v1/signin"""

    def test_attestation_challenge_requires_bearer(self, client, clients):
        response = client.post("/v1/challenge", json={"type": "attestation", "displayName": "John's iPhone"})

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        clients.webauthn.generate_challenge.assert_not_awaited()

    def test_attestation_challenge_with_bearer(self, client, clients):
        response = client.post(
            "/v1/challenge",
            json={"type": "attestation", "displayName": "John's iPhone"},
            headers={"Authorization": "Bearer user-bearer"},
        )

        assert response.status_code == 200
        assert response.json()["challenge"] == "Y2hhbGxlbmdl"
        assert response.json()["type"] == "attestation"
        token, display_name, _ = clients.webauthn.generate_challenge.await_args.args
        assert token.access_token == "user-bearer"
        assert display_name == "John's iPhone"

    def test_assertion_challenge_without_bearer(self, client, clients):
        response = client.post("/v1/challenge", json={"type": "assertion"})

        assert response.status_code == 200
        assert response.json()["type"] == "assertion"
        token, _, _ = clients.webauthn.generate_challenge.await_args.args
        assert token.access_token == "service-token"

    def test_unknown_challenge_type(self, client):
        response = client.post("/v1/challenge", json={"type": "enrolment"})

        assert response.status_code == 422

    def test_register_requires_bearer(self, client, clients):
        response = client.post("/v1/register", json={
            "nickname": "John's iPhone",
            "clientDataJSON": "eyUyBg8Li8GH",
            "attestationObject": "o2M884Yt0a3B7",
            "credentialId": "VGhpcyBpcyBh",
        })

        assert response.status_code == 401
        clients.webauthn.create_credential.assert_not_awaited()

    def test_register_created(self, client, clients):
        response = client.post(
            "/v1/register",
            json={
                "nickname": "John's iPhone",
                "clientDataJSON": "eyUyBg8Li8GH",
                "attestationObject": "o2M884Yt0a3B7",
                "credentialId": "VGhpcyBpcyBh",
            },
            headers={"Authorization": "Bearer user-bearer"},
        )

        assert response.status_code == 201
        assert response.content == b""
        clients.webauthn.create_credential.assert_awaited_once()

    def test_signin(self, client, clients):
        response = client.post("/v1/signin", json={
            "clientDataJSON": "cdj",
            "authenticatorData": "ad",
            "credentialId": "cid",
            "signature": "sig",
            "userHandle": "uh",
        })

        assert response.status_code == 200
        assert response.json()["access_token"] == "user-token"
        clients.auth_tokens.jwt_bearer_grant.assert_awaited_once_with("xyz")

    def test_signin_unparseable_result(self, client, clients):
        clients.webauthn.verify_credential.return_value = b'{"status":"ok"}'

        response = client.post("/v1/signin", json={
            "clientDataJSON": "cdj",
            "authenticatorData": "ad",
            "credentialId": "cid",
            "signature": "sig",
            "userHandle": "uh",
        })

        assert response.status_code == 400
        assert response.json()["code"] == "RESPONSE_PARSE_ERROR"

    def test_signin_missing_fields(self, client):
        response = client.post("/v1/signin", json={"clientDataJSON": "cdj"})

        assert response.status_code == 422
