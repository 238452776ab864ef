"""
RSA Number Theory with Step Traces

Implements the arithmetic behind RSA key generation, each routine returning
the intermediate values it went through so they can be replayed later:
- Modular exponentiation (square-and-multiply, most significant bit first)
- Miller-Rabin primality testing
- Prime number generation
- Extended Euclidean Algorithm and modular inverse

Every traced routine has an untraced sibling (mod_exp, is_probable_prime,
generate_prime) for callers that only need the number.

Note: This implementation avoids using Python's built-in pow(a, b, mod).
      All modular exponentiation uses the square-and-multiply algorithm.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import (
    GcdFailure,
    GenerationCancelled,
    InvalidArgument,
    PrimeGenerationExhausted,
)
from .randomness import RandomSource, resolve_random_source


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

DEFAULT_ROUNDS = 5  # Miller-Rabin rounds, false positive rate <= 4^-5

# Trial division before Miller-Rabin; cheap rejection of most candidates
SMALL_PRIMES = (5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47)


def to_decimal(value: int) -> str:
    """Render an integer for the trace boundary (never a fixed-width number)."""
    return str(value)


# ============================================================================
# Modular Exponentiation
# ============================================================================

@dataclass(frozen=True)
class ModPowStep:
    """
    One operation of square-and-multiply.

    operation is "init" (result = 1, operand = base mod modulus),
    "square" (result = before^2 mod m) or "multiply"
    (result = before * operand mod m). index is the 1-based position of the
    exponent bit being processed, 0 for the init step.
    """
    index: int
    operation: str
    bit: Optional[str]
    before: int
    operand: int
    result: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'operation': self.operation,
            'bit': self.bit,
            'before': to_decimal(self.before),
            'operand': to_decimal(self.operand),
            'result': to_decimal(self.result),
        }


@dataclass(frozen=True)
class ModPowResult:
    """Result of a traced modular exponentiation."""
    base: int
    exponent: int
    modulus: int
    result: int
    binary_exponent: str
    steps: Tuple[ModPowStep, ...]

    @property
    def squarings(self) -> int:
        return sum(1 for s in self.steps if s.operation == "square")

    @property
    def multiplications(self) -> int:
        return sum(1 for s in self.steps if s.operation == "multiply")


def _check_exponentiation_args(exponent: int, modulus: int) -> None:
    if modulus <= 1:
        raise InvalidArgument(f"Modulus must be greater than 1, got {modulus}")
    if exponent < 0:
        raise InvalidArgument("Exponent must be non-negative")


def mod_exp(base: int, exponent: int, modulus: int) -> int:
    """
    Modular exponentiation without a trace.

    Right-to-left square-and-multiply, used in the hot loops of
    Miller-Rabin where recording every step would only waste memory.

    Args:
        base: The base number
        exponent: The exponent (must be non-negative)
        modulus: The modulus (must be > 1)

    Returns:
        (base^exponent) mod modulus

    Raises:
        InvalidArgument: If exponent < 0 or modulus <= 1
    """
    _check_exponentiation_args(exponent, modulus)

    base = base % modulus
    result = 1

    while exponent > 0:
        if exponent & 1:
            result = (result * base) % modulus
        base = (base * base) % modulus
        exponent >>= 1

    return result


def mod_pow(base: int, exponent: int, modulus: int) -> ModPowResult:
    """
    Modular exponentiation with a per-bit trace.

    Algorithm (left-to-right binary method):
    1. result = 1, power = base mod modulus
    2. For each bit of exponent (from MSB to LSB):
       - Square result (mod modulus), always
       - If bit is 1, multiply result by power (mod modulus)

    Every square and multiply is recorded as its own ModPowStep, so the whole
    exponentiation can be replayed bit by bit.

    Args:
        base: The base number
        exponent: The exponent (must be non-negative)
        modulus: The modulus (must be > 1)

    Returns:
        ModPowResult with the final value and the steps

    Raises:
        InvalidArgument: If exponent < 0 or modulus <= 1
    """
    _check_exponentiation_args(exponent, modulus)

    power = base % modulus
    result = 1
    binary_exponent = format(exponent, 'b')

    steps: List[ModPowStep] = [
        ModPowStep(index=0, operation="init", bit=None,
                   before=1, operand=power, result=result)
    ]

    for i, bit in enumerate(binary_exponent, start=1):
        before = result
        result = (result * result) % modulus
        steps.append(ModPowStep(i, "square", bit, before, before, result))

        if bit == '1':
            before = result
            result = (result * power) % modulus
            steps.append(ModPowStep(i, "multiply", bit, before, power, result))

    return ModPowResult(
        base=base,
        exponent=exponent,
        modulus=modulus,
        result=result,
        binary_exponent=binary_exponent,
        steps=tuple(steps),
    )


# ============================================================================
# Extended Euclidean Algorithm
# ============================================================================

@dataclass(frozen=True)
class EuclidStep:
    """One iteration of the extended Euclidean algorithm (post-update r, s, t)."""
    quotient: int
    remainder: int
    coefficient1: int
    coefficient2: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quotient': to_decimal(self.quotient),
            'remainder': to_decimal(self.remainder),
            'coefficient1': to_decimal(self.coefficient1),
            'coefficient2': to_decimal(self.coefficient2),
        }


@dataclass(frozen=True)
class EuclidResult:
    """gcd(a, b) with Bezout coefficients: a*x + b*y == gcd."""
    a: int
    b: int
    gcd: int
    x: int
    y: int
    steps: Tuple[EuclidStep, ...]


def extended_gcd(a: int, b: int) -> EuclidResult:
    """
    Extended Euclidean Algorithm (iterative).

    Finds integers x, y such that: a*x + b*y = gcd(a, b)

    Args:
        a: First integer (non-negative)
        b: Second integer (non-negative)

    Returns:
        EuclidResult with gcd, x, y and one EuclidStep per iteration

    Raises:
        InvalidArgument: If a or b is negative
    """
    if a < 0 or b < 0:
        raise InvalidArgument("extended_gcd expects non-negative integers")

    old_r, r = a, b
    old_s, s = 1, 0
    old_t, t = 0, 1
    steps: List[EuclidStep] = []

    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s
        old_t, t = t, old_t - quotient * t
        steps.append(EuclidStep(quotient, r, s, t))

    return EuclidResult(a=a, b=b, gcd=old_r, x=old_s, y=old_t, steps=tuple(steps))


def gcd(a: int, b: int) -> int:
    """Greatest common divisor of |a| and |b|."""
    return extended_gcd(abs(a), abs(b)).gcd


def mod_inverse(a: int, m: int) -> int:
    """
    Compute modular multiplicative inverse using Extended Euclidean Algorithm.

    Finds x such that (a * x) mod m = 1

    Args:
        a: The number to find inverse of
        m: The modulus (must be > 1)

    Returns:
        Modular inverse of a mod m, in [0, m)

    Raises:
        InvalidArgument: If m <= 1
        GcdFailure: If inverse doesn't exist (gcd(a, m) != 1)
    """
    if m <= 1:
        raise InvalidArgument(f"Modulus must be greater than 1, got {m}")

    result = extended_gcd(a % m, m)
    if result.gcd != 1:
        raise GcdFailure(f"Modular inverse doesn't exist (gcd({a}, {m}) = {result.gcd})")

    return result.x % m


# ============================================================================
# Miller-Rabin Primality Test
# ============================================================================

@dataclass(frozen=True)
class WitnessRound:
    """
    One Miller-Rabin round: x = witness^d mod n followed by the squarings.

    passed is True when the witness failed to prove n composite.
    """
    witness: int
    x: int
    squarings: Tuple[int, ...]
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'witness': to_decimal(self.witness),
            'x': to_decimal(self.x),
            'squarings': [to_decimal(v) for v in self.squarings],
            'passed': self.passed,
        }


@dataclass(frozen=True)
class PrimalityResult:
    """
    Verdict of a primality test on n.

    reason tells which branch decided it: "small" (n < 4, answered
    directly), "even", "trial-division", "witness" (a round proved n
    composite) or "probable-prime" (all rounds passed).
    """
    n: int
    is_prime: bool
    reason: str
    s: int = 0
    d: int = 0
    rounds: Tuple[WitnessRound, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n': to_decimal(self.n),
            'is_prime': self.is_prime,
            'reason': self.reason,
            's': self.s,
            'd': to_decimal(self.d),
            'rounds': [r.to_dict() for r in self.rounds],
        }


def _check_rounds(rounds: int) -> None:
    if rounds <= 0:
        raise InvalidArgument(f"Miller-Rabin needs at least one round, got {rounds}")


def miller_rabin(n: int, rounds: int = DEFAULT_ROUNDS,
                 rng: Optional[RandomSource] = None) -> PrimalityResult:
    """
    Miller-Rabin primality test, returning the full verdict.

    A probabilistic test that determines if n is probably prime.
    Probability of false positive: at most (1/4)^rounds

    Algorithm:
    1. Write n-1 as 2^s * d (factor out powers of 2)
    2. For each round draw a random witness a in [2, n-2]:
       - Compute x = a^d mod n
       - If x = 1 or x = n-1, the round passes
       - Square x up to s-1 times; reaching n-1 passes the round,
         reaching 1 first proves n composite
       - If n-1 is never found, n is composite

    Args:
        n: Number to test for primality
        rounds: Number of rounds (witnesses to test), must be >= 1
        rng: Random source for witnesses (system randomness by default)

    Returns:
        PrimalityResult; is_prime is False only when n is definitely composite

    Raises:
        InvalidArgument: If rounds <= 0
    """
    _check_rounds(rounds)

    if n == 2 or n == 3:
        return PrimalityResult(n, True, "small")
    if n < 2:
        return PrimalityResult(n, False, "small")
    if n % 2 == 0:
        return PrimalityResult(n, False, "even")

    for p in SMALL_PRIMES:
        if n == p:
            return PrimalityResult(n, True, "trial-division")
        if n % p == 0:
            return PrimalityResult(n, False, "trial-division")

    rng = resolve_random_source(rng)

    # Write n-1 as 2^s * d
    s, d = 0, n - 1
    while d % 2 == 0:
        s += 1
        d //= 2

    witness_rounds: List[WitnessRound] = []
    for _ in range(rounds):
        a = rng.randint(2, n - 2)
        x = mod_exp(a, d, n)

        if x == 1 or x == n - 1:
            witness_rounds.append(WitnessRound(a, x, (), True))
            continue

        squarings: List[int] = []
        passed = False
        y = x
        for _ in range(s - 1):
            y = mod_exp(y, 2, n)
            squarings.append(y)
            if y == n - 1:
                passed = True
                break
            if y == 1:
                break

        witness_rounds.append(WitnessRound(a, x, tuple(squarings), passed))
        if not passed:
            return PrimalityResult(n, False, "witness", s, d, tuple(witness_rounds))

    return PrimalityResult(n, True, "probable-prime", s, d, tuple(witness_rounds))


def is_probable_prime(n: int, rounds: int = DEFAULT_ROUNDS,
                      rng: Optional[RandomSource] = None) -> bool:
    """True if n passes `rounds` rounds of Miller-Rabin."""
    return miller_rabin(n, rounds, rng).is_prime


# ============================================================================
# Prime Generation
# ============================================================================

@dataclass(frozen=True)
class PrimeSearch:
    """
    Outcome of a prime search.

    rejected lists the candidates drawn before the accepted one, in draw
    order (key generation also lists a q that came out equal to p); attempts
    counts all draws including the accepted one.
    """
    prime: int
    bits: int
    attempts: int
    rejected: Tuple[int, ...]
    verdict: PrimalityResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'prime': to_decimal(self.prime),
            'bits': self.bits,
            'attempts': self.attempts,
            'rejected': [to_decimal(c) for c in self.rejected],
            'verdict': self.verdict.to_dict(),
        }


def random_odd_candidate(bits: int, rng: RandomSource) -> int:
    """Uniform draw from [2^(bits-1), 2^bits - 1], forced odd."""
    return rng.randint(1 << (bits - 1), (1 << bits) - 1) | 1


def search_prime(
    bits: int,
    rounds: int = DEFAULT_ROUNDS,
    rng: Optional[RandomSource] = None,
    max_attempts: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PrimeSearch:
    """
    Search for a random probable prime of exactly `bits` bits.

    Args:
        bits: Desired bit length of the prime (>= 2)
        rounds: Miller-Rabin rounds per candidate
        rng: Random source for candidates and witnesses
        max_attempts: Give up after this many candidates (None = unbounded)
        should_cancel: Polled before each draw; returning True stops the search

    Returns:
        PrimeSearch with the prime, the rejected candidates and the verdict

    Raises:
        InvalidArgument: If bits < 2, rounds <= 0 or max_attempts <= 0
        PrimeGenerationExhausted: If max_attempts candidates were all composite
        GenerationCancelled: If should_cancel returned True
    """
    if bits < 2:
        raise InvalidArgument("Bit length must be at least 2")
    _check_rounds(rounds)
    if max_attempts is not None and max_attempts <= 0:
        raise InvalidArgument("max_attempts must be positive")

    rng = resolve_random_source(rng)
    rejected: List[int] = []

    while max_attempts is None or len(rejected) < max_attempts:
        if should_cancel is not None and should_cancel():
            raise GenerationCancelled(
                f"Prime search cancelled after {len(rejected)} candidates"
            )

        candidate = random_odd_candidate(bits, rng)
        verdict = miller_rabin(candidate, rounds, rng)
        if verdict.is_prime:
            logger.debug("Accepted %d-bit prime after %d attempts", bits, len(rejected) + 1)
            return PrimeSearch(
                prime=candidate,
                bits=bits,
                attempts=len(rejected) + 1,
                rejected=tuple(rejected),
                verdict=verdict,
            )
        rejected.append(candidate)

    raise PrimeGenerationExhausted(
        f"No {bits}-bit prime found in {max_attempts} attempts"
    )


def generate_prime(bits: int, rounds: int = DEFAULT_ROUNDS,
                   rng: Optional[RandomSource] = None) -> int:
    """Generate a random probable prime with `bits` bits."""
    return search_prime(bits, rounds, rng).prime
