import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from Crypto.Random import get_random_bytes

from zkpauth.auth.errors import (
    ChallengeNotFound,
    MalformedInput,
    NotInitialized,
    StaleParameters,
    UserNotFound,
)
from zkpauth.crypto.group import GroupParameters, generate_parameters
from zkpauth.crypto.zkp import ChaumPedersen

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32
AUTH_ID_BYTES = 16


@dataclass(frozen=True)
class ParameterSnapshot:
    version: int
    parameters: GroupParameters


@dataclass
class UserRecord:
    username: str
    y1: int
    y2: int
    version: int


@dataclass
class PendingChallenge:
    auth_id: str
    username: str
    r1: int
    r2: int
    c: int
    version: int


def _evict_oldest(records: Dict, limit: int, label: str):
    """Drop the oldest entries of an insertion-ordered dict until it fits the limit"""
    while len(records) > limit:
        key = next(iter(records))
        del records[key]
        logger.warning(f"Evicted oldest {label} to stay within {limit} entries")


class AuthManager:
    """Verifier side of the Chaum-Pedersen protocol.

    Holds one immutable parameter snapshot plus the users, challenges and
    sessions maps. Each map has its own lock; the snapshot is swapped
    whole, so readers always see a consistent group.
    """

    def __init__(self, bit_length: int = 1024, max_attempts: Optional[int] = None,
                 max_pending_challenges: int = 100000, max_sessions: int = 100000):
        self.bit_length = bit_length
        self.max_attempts = max_attempts
        self.max_pending_challenges = max_pending_challenges
        self.max_sessions = max_sessions
        self.snapshot: Optional[ParameterSnapshot] = None
        self.users: Dict[str, UserRecord] = {}
        self.challenges: Dict[str, PendingChallenge] = {}
        self.sessions: Dict[str, str] = {}
        self._users_lock = asyncio.Lock()
        self._challenges_lock = asyncio.Lock()
        self._sessions_lock = asyncio.Lock()

    @property
    def parameters(self) -> Optional[GroupParameters]:
        return self.snapshot.parameters if self.snapshot else None

    def require_snapshot(self) -> ParameterSnapshot:
        snapshot = self.snapshot
        if snapshot is None:
            raise NotInitialized("Group parameters are not initialized")
        return snapshot

    def install_parameters(self, params: GroupParameters) -> ParameterSnapshot:
        """Install a group as the current snapshot, bumping the version"""
        version = self.snapshot.version + 1 if self.snapshot else 1
        if self.snapshot is not None:
            logger.warning(f"Replacing group parameters; records from version {self.snapshot.version} become stale")
        self.snapshot = ParameterSnapshot(version=version, parameters=params)
        logger.info(f"Installed {params.bit_length}-bit group parameters (version {version})")
        logger.debug(f"p={params.p} q={params.q} g={params.g} h={params.h}")
        return self.snapshot

    async def init(self, bit_length: Optional[int] = None) -> GroupParameters:
        """Generate a fresh group off the event loop and install it"""
        bits = bit_length or self.bit_length
        logger.info(f"Generating {bits}-bit group parameters...")
        params = await asyncio.to_thread(generate_parameters, bits, self.max_attempts)
        self.install_parameters(params)
        return params

    def _check_element(self, name: str, value: int, p: int):
        if not 1 <= value < p:
            raise MalformedInput(f"{name} must lie in [1, p)")

    async def register(self, username: str, y1: int, y2: int) -> UserRecord:
        """Store (or overwrite) the public commitments y1, y2 for a user"""
        snapshot = self.require_snapshot()
        if not username:
            raise MalformedInput("Username must not be empty")
        self._check_element("y1", y1, snapshot.parameters.p)
        self._check_element("y2", y2, snapshot.parameters.p)

        record = UserRecord(username=username, y1=y1, y2=y2, version=snapshot.version)
        async with self._users_lock:
            replaced = username in self.users
            self.users[username] = record

        logger.info(f"{'Re-registered' if replaced else 'Registered'} user {username}")
        logger.debug(f"{username}: y1={y1} y2={y2}")
        return record

    async def create_challenge(self, username: str, r1: int, r2: int) -> Tuple[str, int]:
        """Record the prover's commitments and issue a random challenge c in [0, q)"""
        snapshot = self.require_snapshot()
        if not username:
            raise MalformedInput("Username must not be empty")
        self._check_element("r1", r1, snapshot.parameters.p)
        self._check_element("r2", r2, snapshot.parameters.p)

        c = ChaumPedersen(snapshot.parameters).challenge()
        auth_id = get_random_bytes(AUTH_ID_BYTES).hex()
        async with self._challenges_lock:
            # re-insert so the dict stays ordered oldest-first
            self.challenges.pop(username, None)
            self.challenges[username] = PendingChallenge(
                auth_id=auth_id,
                username=username,
                r1=r1,
                r2=r2,
                c=c,
                version=snapshot.version
            )
            _evict_oldest(self.challenges, self.max_pending_challenges, "pending challenge")

        logger.info(f"Issued challenge {auth_id} to {username}")
        logger.debug(f"{username}: r1={r1} r2={r2} c={c}")
        return auth_id, c

    async def _take_challenge(self, username: str, auth_id: Optional[str]) -> PendingChallenge:
        async with self._challenges_lock:
            challenge = self.challenges.get(username)
            if challenge is None:
                raise ChallengeNotFound(f"No pending challenge for {username}")
            if auth_id is not None and challenge.auth_id != auth_id:
                raise ChallengeNotFound(f"Challenge {auth_id} is not pending for {username}")
            del self.challenges[username]
            return challenge

    async def verify(self, username: str, s: int, auth_id: Optional[str] = None) -> str:
        """Check the response s; return a session token, or "" if the proof is invalid"""
        snapshot = self.require_snapshot()
        params = snapshot.parameters
        if not 0 <= s < params.q:
            raise MalformedInput("s must lie in [0, q)")

        async with self._users_lock:
            user = self.users.get(username)
        if user is None:
            raise UserNotFound(f"User {username} is not registered")

        challenge = await self._take_challenge(username, auth_id)

        if user.version != snapshot.version or challenge.version != snapshot.version:
            raise StaleParameters(f"Records for {username} predate the current group parameters")

        valid = await asyncio.to_thread(
            ChaumPedersen(params).verify,
            user.y1, user.y2, challenge.r1, challenge.r2, challenge.c, s
        )
        if not valid:
            logger.warning(f"Proof rejected for {username} (challenge {challenge.auth_id})")
            return ""

        token = get_random_bytes(SESSION_TOKEN_BYTES).hex()
        async with self._sessions_lock:
            self.sessions[token] = username
            _evict_oldest(self.sessions, self.max_sessions, "session")
        logger.info(f"Proof accepted for {username} (challenge {challenge.auth_id})")
        return token

    async def session_user(self, token: str) -> Optional[str]:
        async with self._sessions_lock:
            return self.sessions.get(token)

    def status(self) -> Dict:
        """Public, secret-free view of the server state"""
        snapshot = self.snapshot
        return {
            "initialized": snapshot is not None,
            "parameter_version": snapshot.version if snapshot else 0,
            "bit_length": snapshot.parameters.bit_length if snapshot else 0,
            "registered_users": len(self.users),
            "pending_challenges": len(self.challenges),
            "active_sessions": len(self.sessions)
        }
