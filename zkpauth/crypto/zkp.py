from typing import Tuple

from Crypto.Hash import SHA256
from Crypto.Util.number import bytes_to_long, long_to_bytes, getRandomRange

from zkpauth.auth.errors import MalformedInput
from zkpauth.crypto.group import GroupParameters


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    if exponent < 0:
        raise ValueError("Exponent must be non-negative")
    return pow(base, exponent, modulus)


def random_in_range(low: int, high: int) -> int:
    """Uniform value from [low, high) drawn from a cryptographically secure source"""
    if high <= low:
        raise ValueError("Empty range")
    return getRandomRange(low, high)


def encode_int(value: int) -> bytes:
    """Minimal big-endian unsigned encoding; zero encodes as b''"""
    if value < 0:
        raise MalformedInput("Cannot encode a negative integer")
    if value == 0:
        return b""
    return long_to_bytes(value)


def decode_int(data: bytes) -> int:
    return bytes_to_long(data) if data else 0


def int_to_hex(value: int) -> str:
    """Wire form used by the HTTP transport: hex text of encode_int"""
    return encode_int(value).hex()


def hex_to_int(text: str) -> int:
    try:
        return decode_int(bytes.fromhex(text))
    except (ValueError, TypeError):
        raise MalformedInput("Value is not a valid hex-encoded integer")


def secret_from_password(password: str, q: int) -> int:
    """Derive a secret exponent in [1, q) from a password"""
    digest = SHA256.new(password.encode("utf-8")).digest()
    return bytes_to_long(digest) % (q - 1) + 1


class ChaumPedersen:
    def __init__(self, params: GroupParameters):
        """Bind the proof algebra to one group"""
        self.params = params

    @property
    def p(self) -> int:
        return self.params.p

    @property
    def q(self) -> int:
        return self.params.q

    def public_commitments(self, secret: int) -> Tuple[int, int]:
        """y1 = g^x mod p, y2 = h^x mod p"""
        return (mod_pow(self.params.g, secret, self.p),
                mod_pow(self.params.h, secret, self.p))

    def commit(self) -> Tuple[int, int, int]:
        """Pick a fresh nonce k and return (k, g^k mod p, h^k mod p)"""
        k = random_in_range(0, self.q)
        r1, r2 = self.public_commitments(k)
        return k, r1, r2

    def challenge(self) -> int:
        return random_in_range(0, self.q)

    def response(self, k: int, c: int, secret: int) -> int:
        """s = (k - c*x) mod q, normalised into [0, q)"""
        s = k - (c * secret) % self.q
        if s < 0:
            s += self.q
        return s

    def verify(self, y1: int, y2: int, r1: int, r2: int, c: int, s: int) -> bool:
        """Check g^s * y1^c == r1 and h^s * y2^c == r2 (mod p)"""
        v1 = (mod_pow(self.params.g, s, self.p) * mod_pow(y1, c, self.p)) % self.p
        v2 = (mod_pow(self.params.h, s, self.p) * mod_pow(y2, c, self.p)) % self.p
        return v1 == r1 and v2 == r2
