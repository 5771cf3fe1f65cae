import pytest
import requests
from fastapi.testclient import TestClient

from zkpauth.api.main import create_app
from zkpauth.auth.auth_manager import AuthManager
from zkpauth.auth.errors import ChallengeNotFound, MalformedInput, NotInitialized, UserNotFound, ZKPAuthError
from zkpauth.client.cli import run
from zkpauth.client.zkp_client import ZKPClient
from zkpauth.crypto.zkp import ChaumPedersen, int_to_hex


@pytest.fixture
def client(manager):
    with TestClient(create_app(manager)) as test_client:
        yield test_client


def test_init_communication_returns_parameters(client, small_group):
    response = client.post("/init-communication", json={})
    assert response.status_code == 200
    assert response.json() == {
        "p": int_to_hex(2039),
        "q": int_to_hex(1019),
        "g": "04",
        "h": "09"
    }


def test_client_login_succeeds(client, manager):
    zkp_client = ZKPClient("alice", 321, api_url="", session=client)
    session = zkp_client.login()

    assert session
    assert zkp_client.params == manager.parameters
    assert zkp_client.y1 == manager.users["alice"].y1
    assert client.get("/status").json()["active_sessions"] == 1


def test_client_with_wrong_secret_is_rejected(client):
    ZKPClient("alice", 321, api_url="", session=client).login()

    impostor = ZKPClient("alice", 322, api_url="", session=client)
    impostor.fetch_parameters()
    assert impostor.prove() == ""


def test_client_can_prove_repeatedly(client):
    zkp_client = ZKPClient("alice", 321, api_url="", session=client)
    zkp_client.login()
    tokens = {zkp_client.prove() for _ in range(5)}
    assert len(tokens) == 5 and "" not in tokens


def test_client_rejects_out_of_range_secret(client):
    with pytest.raises(MalformedInput):
        ZKPClient("alice", 1019, api_url="", session=client).register()


def test_verify_unknown_user_maps_to_404(client):
    response = client.post("/verify", json={"username": "nobody", "s": "01"})
    assert response.status_code == 404
    assert response.json()["error"] == "UserNotFound"

    zkp_client = ZKPClient("nobody", 5, api_url="", session=client)
    with pytest.raises(UserNotFound):
        zkp_client.prove()


def test_verify_without_challenge_maps_to_404(client):
    client.post("/register", json={"username": "alice", "y1": "04", "y2": "09"})
    response = client.post("/verify", json={"username": "alice", "s": ""})
    assert response.status_code == 404
    assert response.json()["error"] == "ChallengeNotFound"


def test_stale_auth_id_is_rejected(client, small_group):
    engine = ChaumPedersen(small_group)
    y1, y2 = engine.public_commitments(8)
    client.post("/register", json={"username": "alice", "y1": int_to_hex(y1), "y2": int_to_hex(y2)})
    k, r1, r2 = engine.commit()
    challenge = client.post("/challenge", json={
        "username": "alice", "r1": int_to_hex(r1), "r2": int_to_hex(r2)
    }).json()

    response = client.post("/verify", json={"username": "alice", "s": "01", "auth_id": "0" * 32})
    assert response.status_code == 404

    c = int(challenge["c"] or "0", 16)
    response = client.post("/verify", json={
        "username": "alice",
        "s": int_to_hex(engine.response(k, c, 8)),
        "auth_id": challenge["auth_id"]
    })
    assert response.status_code == 200
    assert response.json()["session"]


@pytest.mark.parametrize("payload", [
    {"username": "alice", "y1": "not-hex", "y2": "09"},
    {"username": "alice", "y1": "", "y2": "09"},
    {"username": "", "y1": "04", "y2": "09"},
])
def test_malformed_register_maps_to_400(client, payload):
    response = client.post("/register", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "MalformedInput"


def test_missing_fields_fail_validation(client):
    response = client.post("/challenge", json={"username": "alice"})
    assert response.status_code == 422


def test_uninitialized_server_maps_to_503():
    # no context manager: lifespan (and so Init) never runs
    client = TestClient(create_app(AuthManager()))
    response = client.post("/init-communication", json={})
    assert response.status_code == 503
    assert response.json()["error"] == "NotInitialized"

    with pytest.raises(NotInitialized):
        ZKPClient("alice", 5, api_url="", session=client).fetch_parameters()


def test_startup_generates_group():
    manager = AuthManager(bit_length=32)
    with TestClient(create_app(manager)) as client:
        status = client.get("/status").json()
    assert status["initialized"] is True
    assert status["bit_length"] == 32
    manager.parameters.validate()


def test_cli_login_with_password(client, capsys):
    assert run(["--username", "carol", "--password", "hunter2", "--api-url", ""], session=client) == 0
    assert "Authentication successful" in capsys.readouterr().out

    assert run(["--username", "carol", "--password", "hunter2", "--api-url", "", "--skip-register"],
               session=client) == 0
    assert run(["--username", "carol", "--password", "wrong", "--api-url", "", "--skip-register"],
               session=client) == 1
    assert "Authentication failed" in capsys.readouterr().out


def test_cli_reports_protocol_errors(client, capsys):
    assert run(["--username", "dave", "--secret", "7", "--api-url", "", "--skip-register"],
               session=client) == 2
    assert "Error during proof" in capsys.readouterr().out


def test_client_surfaces_challenge_errors(client):
    zkp_client = ZKPClient("erin", 5, api_url="", session=client)
    zkp_client.register()
    with pytest.raises(ChallengeNotFound):
        zkp_client._post("/verify", {"username": "erin", "s": "01"})


class CannedSession:
    """Stands in for requests.Session, answering every POST the same way"""

    def __init__(self, status_code=500, content=b"Internal Server Error", error=None):
        self.status_code = status_code
        self.content = content
        self.error = error

    def post(self, url, json=None):
        if self.error is not None:
            raise self.error
        response = requests.Response()
        response.status_code = self.status_code
        response._content = self.content
        return response


def test_plain_text_server_error_becomes_protocol_error():
    zkp_client = ZKPClient("alice", 5, api_url="http://server", session=CannedSession())
    with pytest.raises(ZKPAuthError, match="500: Internal Server Error"):
        zkp_client.fetch_parameters()


def test_non_json_success_body_is_rejected():
    zkp_client = ZKPClient("alice", 5, api_url="http://server", session=CannedSession(200, b"<html>ok</html>"))
    with pytest.raises(ZKPAuthError, match="non-JSON"):
        zkp_client.fetch_parameters()


def test_cli_reports_plain_text_server_error(capsys):
    assert run(["--username", "alice", "--secret", "5", "--api-url", ""], session=CannedSession()) == 2
    assert "Internal Server Error" in capsys.readouterr().out


def test_cli_reports_unreachable_server(capsys):
    session = CannedSession(error=requests.ConnectionError("connection refused"))
    assert run(["--username", "alice", "--secret", "5", "--api-url", ""], session=session) == 2
    assert "Could not reach server" in capsys.readouterr().out


def test_error_responses_are_documented(client):
    schema = client.get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    verify_responses = schema["paths"]["/verify"]["post"]["responses"]
    assert {"400", "404", "409", "503"} <= set(verify_responses)
    assert verify_responses["404"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
