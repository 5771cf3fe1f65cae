import logging
from typing import Optional, Tuple

import requests

from zkpauth.auth.errors import ERROR_KINDS, MalformedInput, ZKPAuthError
from zkpauth.crypto.group import GroupParameters
from zkpauth.crypto.zkp import ChaumPedersen, hex_to_int, int_to_hex

logger = logging.getLogger(__name__)


class ZKPClient:
    """Prover side of the Chaum-Pedersen protocol.

    Holds the secret x, the fetched group and the registered y1, y2.
    The per-proof nonce k and response s never leave prove().
    """

    def __init__(self, username: str, secret: int, api_url: str = "http://localhost:8000", session=None):
        self.username = username
        self.secret = secret
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.params: Optional[GroupParameters] = None
        self.y1: Optional[int] = None
        self.y2: Optional[int] = None

    def _post(self, path: str, payload: dict) -> dict:
        response = self.session.post(f"{self.api_url}{path}", json=payload)
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            if isinstance(body, dict) and body.get("error") in ERROR_KINDS:
                raise ERROR_KINDS[body["error"]](f"{path} failed with {response.status_code}: {body.get('detail')}")
            detail = body.get("detail") if isinstance(body, dict) else response.text
            raise ZKPAuthError(f"{path} failed with {response.status_code}: {detail}")
        if not isinstance(body, dict):
            raise ZKPAuthError(f"{path} returned a non-JSON response")
        return body

    def _engine(self) -> ChaumPedersen:
        if self.params is None:
            self.fetch_parameters()
        return ChaumPedersen(self.params)

    def fetch_parameters(self) -> GroupParameters:
        """Request the group parameters from the server"""
        logger.info("Requesting parameters from server...")
        body = self._post("/init-communication", {})
        self.params = GroupParameters(
            p=hex_to_int(body["p"]),
            q=hex_to_int(body["q"]),
            g=hex_to_int(body["g"]),
            h=hex_to_int(body["h"])
        )
        logger.debug(f"p={self.params.p} q={self.params.q} g={self.params.g} h={self.params.h}")
        return self.params

    def register(self) -> Tuple[int, int]:
        """Send y1 = g^x, y2 = h^x for this username"""
        engine = self._engine()
        if not 1 <= self.secret < engine.q:
            raise MalformedInput("Secret must lie in [1, q)")

        logger.info(f"Registering user {self.username}...")
        self.y1, self.y2 = engine.public_commitments(self.secret)
        self._post("/register", {
            "username": self.username,
            "y1": int_to_hex(self.y1),
            "y2": int_to_hex(self.y2)
        })
        logger.info("User registered successfully")
        return self.y1, self.y2

    def prove(self) -> str:
        """Run one challenge/response round; returns the session token, "" on rejection"""
        engine = self._engine()

        logger.info("Generating proof...")
        k, r1, r2 = engine.commit()
        challenge = self._post("/challenge", {
            "username": self.username,
            "r1": int_to_hex(r1),
            "r2": int_to_hex(r2)
        })
        c = hex_to_int(challenge["c"])
        s = engine.response(k, c, self.secret)

        logger.info("Verifying proof...")
        result = self._post("/verify", {
            "username": self.username,
            "s": int_to_hex(s),
            "auth_id": challenge["auth_id"]
        })
        session = result["session"]
        if session:
            logger.info(f"Authentication succeeded for {self.username}")
        else:
            logger.warning(f"Authentication failed for {self.username}")
        return session

    def login(self) -> str:
        """Fetch parameters, register, then prove"""
        self.fetch_parameters()
        self.register()
        return self.prove()
