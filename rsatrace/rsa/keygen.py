"""
RSA Key Pair Generation

Generates two random primes p and q, computes n = p*q and
phi(n) = (p-1)(q-1), checks that the fixed public exponent e = 65537 is
coprime with phi(n) and derives d = e^-1 mod phi(n).

Every stage is recorded in a Trace, one Step per stage:
    primeGeneration -> modulusCalculation -> totientCalculation
    -> publicExponent -> privateExponent

If gcd(e, phi) != 1 the primes are thrown away and drawn again; only the
accepted attempt appears in the trace, with the number of discarded pairs
stored in the publicExponent step. After max_regenerations discarded pairs
a GcdFailure is raised.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ..core_crypto.randomness import RandomSource, resolve_random_source
from ..core_crypto.rsa_math import (
    DEFAULT_ROUNDS,
    extended_gcd,
    mod_inverse,
    search_prime,
)
from ..errors import GcdFailure, InvalidArgument
from .keys import PUBLIC_EXPONENT, KeyPair, PrivateKey, PublicKey
from .trace import (
    ModulusCalculationData,
    PrimeGenerationData,
    PrivateExponentData,
    PublicExponentData,
    StepKind,
    TotientCalculationData,
    Trace,
)


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

DEFAULT_KEY_BITS = 512
MIN_KEY_BITS = 16
MAX_KEY_BITS = 2048
DEFAULT_MAX_REGENERATIONS = 64


@dataclass(frozen=True)
class KeyGenerationResult:
    """A key pair together with the trace that produced it."""
    key_pair: KeyPair
    trace: Trace

    @property
    def public_key(self) -> PublicKey:
        return self.key_pair.public_key

    @property
    def private_key(self) -> PrivateKey:
        return self.key_pair.private_key


def validate_key_bits(bits: int) -> None:
    """Raise InvalidArgument unless bits is an even int in [MIN_KEY_BITS, MAX_KEY_BITS]."""
    if isinstance(bits, bool) or not isinstance(bits, int):
        raise InvalidArgument(f"Key size must be an integer, got {type(bits).__name__}")
    if not MIN_KEY_BITS <= bits <= MAX_KEY_BITS:
        raise InvalidArgument(
            f"Key size must be between {MIN_KEY_BITS} and {MAX_KEY_BITS} bits, got {bits}"
        )
    if bits % 2:
        raise InvalidArgument(f"Key size must be even, got {bits}")


class KeyPairGenerator:
    """
    Traced RSA key pair generator.

    Example:
        >>> from rsatrace.core_crypto.randomness import SeededRandomSource
        >>> generator = KeyPairGenerator(rng=SeededRandomSource(1))
        >>> result = generator.generate(64)
        >>> [step.kind.value for step in result.trace][0]
        'primeGeneration'
    """

    def __init__(
        self,
        rounds: int = DEFAULT_ROUNDS,
        rng: Optional[RandomSource] = None,
        public_exponent: int = PUBLIC_EXPONENT,
        max_attempts: Optional[int] = None,
        max_regenerations: int = DEFAULT_MAX_REGENERATIONS,
        should_cancel: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            rounds: Miller-Rabin rounds per candidate
            rng: Random source (system randomness when None)
            public_exponent: e, odd and > 1
            max_attempts: Per-prime candidate limit (None = unbounded)
            max_regenerations: Prime pairs to discard on gcd(e, phi) != 1
                before giving up
            should_cancel: Polled during prime search; True aborts generation
        """
        if rounds <= 0:
            raise InvalidArgument(f"Miller-Rabin needs at least one round, got {rounds}")
        if public_exponent <= 1 or public_exponent % 2 == 0:
            raise InvalidArgument("Public exponent must be odd and greater than 1")
        if max_regenerations < 0:
            raise InvalidArgument("max_regenerations must not be negative")

        self.rounds = rounds
        self.rng = resolve_random_source(rng)
        self.public_exponent = public_exponent
        self.max_attempts = max_attempts
        self.max_regenerations = max_regenerations
        self.should_cancel = should_cancel

    def _search(self, bits: int):
        return search_prime(
            bits,
            rounds=self.rounds,
            rng=self.rng,
            max_attempts=self.max_attempts,
            should_cancel=self.should_cancel,
        )

    def generate(self, bits: int = DEFAULT_KEY_BITS) -> KeyGenerationResult:
        """
        Generate a key pair whose modulus is built from two bits/2-bit primes.

        Raises:
            InvalidArgument: If bits is not an even int in range
            GcdFailure: If no coprime prime pair was found within
                max_regenerations
            PrimeGenerationExhausted: If a bounded prime search gave up
            GenerationCancelled: If should_cancel fired
        """
        validate_key_bits(bits)
        prime_bits = bits // 2
        e = self.public_exponent

        regenerations = 0
        while True:
            p_search = self._search(prime_bits)
            q_search = self._search(prime_bits)

            # Ensure p != q; a q equal to p counts as a rejected draw
            while q_search.prime == p_search.prime:
                redraw = self._search(prime_bits)
                q_search = replace(
                    redraw,
                    attempts=q_search.attempts + redraw.attempts,
                    rejected=q_search.rejected + (q_search.prime,) + redraw.rejected,
                )

            p, q = p_search.prime, q_search.prime
            phi = (p - 1) * (q - 1)
            euclid = extended_gcd(e, phi)
            if euclid.gcd == 1:
                break

            regenerations += 1
            logger.debug("gcd(e, phi) = %d, regenerating primes (%d)", euclid.gcd, regenerations)
            if regenerations > self.max_regenerations:
                raise GcdFailure(
                    f"e = {e} shares a factor with phi(n) for "
                    f"{regenerations} prime pairs in a row"
                )

        n = p * q
        d = mod_inverse(e, phi)
        ed_mod_phi = (e * d) % phi
        if ed_mod_phi != 1:
            raise GcdFailure(f"Private exponent check failed: e*d mod phi = {ed_mod_phi}")

        trace = Trace()
        trace.record(
            StepKind.PRIME_GENERATION,
            "Generating prime numbers p and q",
            PrimeGenerationData(bits=prime_bits, p=p_search, q=q_search),
        )
        trace.record(
            StepKind.MODULUS_CALCULATION,
            "Computing modulus n = p × q",
            ModulusCalculationData(p=p, q=q, n=n),
        )
        trace.record(
            StepKind.TOTIENT_CALCULATION,
            "Computing Euler's totient φ(n) = (p-1)(q-1)",
            TotientCalculationData(p=p, q=q, p_minus_1=p - 1, q_minus_1=q - 1, phi=phi),
        )
        trace.record(
            StepKind.PUBLIC_EXPONENT,
            "Selecting public exponent e",
            PublicExponentData(
                e=e,
                phi=phi,
                gcd=euclid.gcd,
                x=euclid.x,
                y=euclid.y,
                steps=euclid.steps,
                regenerations=regenerations,
            ),
        )
        trace.record(
            StepKind.PRIVATE_EXPONENT,
            "Computing private exponent d",
            PrivateExponentData(e=e, phi=phi, d=d, ed_mod_phi=ed_mod_phi),
        )

        key_pair = KeyPair(PublicKey(e, n), PrivateKey(d, n))
        logger.info(
            "Generated %d-bit RSA key pair (p: %d attempts, q: %d attempts)",
            n.bit_length(), p_search.attempts, q_search.attempts,
        )
        return KeyGenerationResult(key_pair=key_pair, trace=trace)


def generate_key_pair(
    bits: int = DEFAULT_KEY_BITS,
    rounds: int = DEFAULT_ROUNDS,
    rng: Optional[RandomSource] = None,
    **options,
) -> KeyGenerationResult:
    """
    Generate an RSA key pair and its trace.

    Extra keyword arguments are passed to KeyPairGenerator.
    """
    return KeyPairGenerator(rounds=rounds, rng=rng, **options).generate(bits)
