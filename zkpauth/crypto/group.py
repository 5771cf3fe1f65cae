from dataclasses import dataclass
from typing import Optional
import logging
import math

from Crypto.Math.Primality import COMPOSITE, test_probable_prime
from Crypto.Util.number import isPrime, getRandomNBitInteger, getRandomRange, sieve_base

from zkpauth.auth.errors import GroupGenerationError

logger = logging.getLogger(__name__)

# Miller-Rabin + Lucas error bound passed to isPrime
PRIME_ERROR_BOUND = 1e-20
MIN_BIT_LENGTH = 8

# Odd primes used to sieve q and 2q + 1 before the probabilistic test
SIEVE_PRIMES = sieve_base[1:1000]
TWIN_PRIME_CONSTANT = 0.6601618158
# Default search cap as a multiple of expected_attempts(); exceeding it has probability ~e^-50
ATTEMPT_HEADROOM = 50


@dataclass(frozen=True)
class GroupParameters:
    p: int
    q: int
    g: int
    h: int

    @property
    def bit_length(self) -> int:
        return self.p.bit_length()

    def validate(self) -> None:
        """Check the safe-prime group invariants, raising ValueError on the first violation"""
        if self.p != 2 * self.q + 1:
            raise ValueError("p must equal 2q + 1")
        if not isPrime(self.q, false_positive_prob=PRIME_ERROR_BOUND):
            raise ValueError("q is not prime")
        if not isPrime(self.p, false_positive_prob=PRIME_ERROR_BOUND):
            raise ValueError("p is not prime")
        for name, value in (("g", self.g), ("h", self.h)):
            if not 1 < value < self.p:
                raise ValueError(f"{name} must lie in (1, p)")
            if pow(value, self.q, self.p) != 1:
                raise ValueError(f"{name} does not lie in the order-q subgroup")

    def to_dict(self) -> dict:
        return {'p': self.p, 'q': self.q, 'g': self.g, 'h': self.h}


def find_generator(p: int, q: int) -> int:
    """Return a random generator of the order-q subgroup of Z_p*.

    A uniform element of [2, p) is raised to the cofactor (p-1)/q; the
    image has order dividing q, and since q is prime any image other
    than 1 generates the whole subgroup.
    """
    cofactor = (p - 1) // q
    while True:
        candidate = pow(getRandomRange(2, p), cofactor, p)
        if candidate != 1:
            return candidate


def expected_attempts(bit_length: int) -> int:
    """Expected number of odd (bit_length - 1)-bit draws before q and 2q + 1 are both prime.

    Sophie Germain primes near N have density about 2*C2/ln(N)^2 among
    all integers (C2 the twin-prime constant), so 4*C2/ln(N)^2 among odd ones.
    """
    log_n = (bit_length - 1) * math.log(2)
    return math.ceil(log_n ** 2 / (4 * TWIN_PRIME_CONSTANT))


def _sieve_rejects(q: int) -> bool:
    """True when a small prime divides q or 2q + 1"""
    for r in SIEVE_PRIMES:
        if r >= q:
            break
        rem = q % r
        if rem == 0 or rem == (r - 1) // 2:
            return True
    return False


def generate_parameters(bit_length: int = 1024, max_attempts: Optional[int] = None) -> GroupParameters:
    """Generate a fresh safe prime p = 2q + 1 and two independent generators g, h.

    Each attempt draws one odd q; candidates are sieved jointly for q and
    2q + 1 before the Miller-Rabin + Lucas test, so most attempts cost a
    handful of small divisions.
    """
    if bit_length < MIN_BIT_LENGTH:
        raise ValueError(f"bit_length must be at least {MIN_BIT_LENGTH}")
    if max_attempts is None:
        max_attempts = ATTEMPT_HEADROOM * expected_attempts(bit_length)

    q_bits = bit_length - 1
    for attempt in range(1, max_attempts + 1):
        q = getRandomNBitInteger(q_bits) | 1
        if _sieve_rejects(q):
            continue
        if test_probable_prime(q) == COMPOSITE:
            continue
        p = 2 * q + 1
        if test_probable_prime(p) == COMPOSITE:
            continue

        g = find_generator(p, q)
        h = find_generator(p, q)
        while h == g:
            h = find_generator(p, q)

        logger.info(f"Generated {p.bit_length()}-bit safe-prime group after {attempt} attempts")
        return GroupParameters(p=p, q=q, g=g, h=h)

    raise GroupGenerationError(
        f"No {bit_length}-bit safe prime found within {max_attempts} attempts"
    )


def known_group(p: int, q: int, g: int, h: int) -> GroupParameters:
    """Build a group from fixed values, checking every invariant"""
    params = GroupParameters(p=p, q=q, g=g, h=h)
    params.validate()
    return params
