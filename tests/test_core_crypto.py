"""
Unit tests for Core Crypto modules.

Tests:
- Square-and-multiply (traced and untraced)
- Extended Euclidean Algorithm / modular inverse
- Miller-Rabin primality test
- Prime generation
- Randomness sources
"""

import random

import pytest
from rsatrace.core_crypto.randomness import SeededRandomSource, SystemRandomSource
from rsatrace.core_crypto.rsa_math import (
    mod_exp, mod_pow, extended_gcd, gcd, mod_inverse,
    miller_rabin, is_probable_prime, search_prime, generate_prime,
)
from rsatrace.errors import (
    InvalidArgument, GcdFailure, PrimeGenerationExhausted, GenerationCancelled,
)


class FixedWitnessSource:
    """Random source that always picks the same Miller-Rabin witness."""

    def __init__(self, witness):
        self.witness = witness

    def randbits(self, k):
        return 0

    def randbelow(self, n):
        return 0

    def randint(self, a, b):
        return self.witness


class LowestCandidateSource:
    """Always draws the bottom of the range: 2^(bits-1), forced odd to 2^(bits-1)+1."""

    def randbits(self, k):
        return 0

    def randbelow(self, n):
        return 0

    def randint(self, a, b):
        return a


def slow_mod_pow(base, exponent, modulus):
    result = 1 % modulus
    for _ in range(exponent):
        result = (result * base) % modulus
    return result


class TestModularExponentiation:
    """Unit tests for square-and-multiply."""

    def test_textbook_value(self):
        """4^13 mod 497 = 445."""
        assert mod_pow(4, 13, 497).result == 445
        assert mod_exp(4, 13, 497) == 445

    def test_matches_repeated_multiplication(self):
        """Traced and untraced versions match the slow reference."""
        rnd = random.Random(364)
        for _ in range(200):
            base = rnd.randrange(0, 500)
            exponent = rnd.randrange(0, 200)
            modulus = rnd.randrange(2, 500)
            expected = slow_mod_pow(base, exponent, modulus)
            assert mod_pow(base, exponent, modulus).result == expected
            assert mod_exp(base, exponent, modulus) == expected

    def test_fermat_little_theorem(self):
        """a^(p-1) = 1 (mod p) for prime p."""
        p = 104729
        assert mod_pow(2, p - 1, p).result == 1

    def test_step_counts(self):
        """13 = 1101b: one init, four squarings, three multiplications."""
        result = mod_pow(4, 13, 497)
        assert result.binary_exponent == "1101"
        assert result.squarings == 4
        assert result.multiplications == 3
        assert len(result.steps) == 8
        assert result.steps[0].operation == "init"

    def test_steps_replay(self):
        """Every recorded step is consistent with its operands."""
        result = mod_pow(123456789, 65537, 999999937)
        modulus = result.modulus
        current = 1
        for step in result.steps[1:]:
            assert step.before == current
            if step.operation == "square":
                assert step.result == (step.before * step.before) % modulus
            else:
                assert step.bit == "1"
                assert step.operand == 123456789 % modulus
                assert step.result == (step.before * step.operand) % modulus
            current = step.result
        assert current == result.result

    def test_multiply_follows_square_for_same_bit(self):
        """A multiply step always comes right after the square of the same bit."""
        steps = mod_pow(7, 0b101101, 1000).steps
        for i, step in enumerate(steps):
            if step.operation == "multiply":
                assert steps[i - 1].operation == "square"
                assert steps[i - 1].index == step.index

    def test_zero_exponent(self):
        """x^0 = 1."""
        result = mod_pow(7, 0, 13)
        assert result.result == 1
        assert result.binary_exponent == "0"

    def test_base_larger_than_modulus(self):
        """Base is reduced first."""
        assert mod_pow(500, 3, 7).result == pow(500, 3, 7)

    def test_invalid_modulus(self):
        """Modulus <= 1 is rejected."""
        for modulus in (1, 0, -5):
            with pytest.raises(InvalidArgument):
                mod_pow(2, 3, modulus)
            with pytest.raises(InvalidArgument):
                mod_exp(2, 3, modulus)

    def test_negative_exponent(self):
        """Negative exponent is rejected."""
        with pytest.raises(InvalidArgument):
            mod_pow(2, -1, 7)


class TestExtendedEuclid:
    """Unit tests for the Extended Euclidean Algorithm."""

    def test_textbook_rsa_example(self):
        """e=17, phi=3120 gives d=2753."""
        result = extended_gcd(17, 3120)
        assert result.gcd == 1
        assert result.x % 3120 == 2753
        assert 17 * result.x + 3120 * result.y == 1

    def test_recorded_steps(self):
        """Each iteration records quotient, remainder and both coefficients."""
        result = extended_gcd(240, 46)
        rows = [(s.quotient, s.remainder, s.coefficient1, s.coefficient2)
                for s in result.steps]
        assert rows == [
            (5, 10, 1, -5),
            (4, 6, -4, 21),
            (1, 4, 5, -26),
            (1, 2, -9, 47),
            (2, 0, 23, -120),
        ]
        assert (result.gcd, result.x, result.y) == (2, -9, 47)

    def test_bezout_identity_randomized(self):
        """a*x + b*y == gcd for random pairs."""
        rnd = random.Random(17)
        for _ in range(200):
            a = rnd.randrange(0, 10 ** 12)
            b = rnd.randrange(0, 10 ** 12)
            result = extended_gcd(a, b)
            assert a * result.x + b * result.y == result.gcd
            assert result.gcd == gcd(a, b)

    def test_last_step_has_zero_remainder(self):
        """The loop ends when the remainder reaches zero."""
        assert extended_gcd(65537, 3120).steps[-1].remainder == 0

    def test_zero_second_argument(self):
        """gcd(a, 0) = a with no iterations."""
        result = extended_gcd(42, 0)
        assert (result.gcd, result.x, result.y) == (42, 1, 0)
        assert result.steps == ()

    def test_gcd(self):
        """Test GCD calculation."""
        assert gcd(48, 18) == 6
        assert gcd(17, 13) == 1
        assert gcd(-48, 18) == 6

    def test_negative_input_rejected(self):
        """extended_gcd only takes non-negative integers."""
        with pytest.raises(InvalidArgument):
            extended_gcd(-3, 10)

    def test_mod_inverse(self):
        """3 * 7 = 1 (mod 10)."""
        assert mod_inverse(3, 10) == 7
        assert mod_inverse(17, 3120) == 2753

    def test_mod_inverse_matches_builtin(self):
        """The Euclid-based inverse agrees with pow(a, -1, m)."""
        rnd = random.Random(43)
        checked = 0
        while checked < 100:
            m = rnd.randrange(2, 10 ** 9)
            a = rnd.randrange(1, m)
            if gcd(a, m) != 1:
                continue
            assert mod_inverse(a, m) == pow(a, -1, m)
            checked += 1

    def test_mod_inverse_missing(self):
        """No inverse when gcd != 1."""
        with pytest.raises(GcdFailure):
            mod_inverse(6, 9)

    def test_mod_inverse_bad_modulus(self):
        """Modulus must exceed 1."""
        with pytest.raises(InvalidArgument):
            mod_inverse(3, 1)


class TestMillerRabin:
    """Unit tests for the Miller-Rabin test."""

    def test_primes(self):
        """Miller-Rabin should identify primes."""
        rng = SeededRandomSource(1)
        primes = [2, 3, 5, 7, 11, 13, 17, 19, 23, 97, 101, 1009, 104729, 2 ** 61 - 1]
        for p in primes:
            assert is_probable_prime(p, rng=rng), f"{p} should be prime"

    def test_composites(self):
        """Known small composites are rejected with the default round count."""
        rng = SeededRandomSource(2)
        composites = [0, 1, 4, 6, 8, 9, 10, 15, 21, 100, 561, 1105, 3127, 10403,
                      1009 * 1013, 104730]
        for c in composites:
            assert not is_probable_prime(c, rng=rng), f"{c} should not be prime"

    def test_even_rejected_without_witnesses(self):
        """Even n > 2 never reaches the witness loop."""
        result = miller_rabin(10 ** 20)
        assert not result.is_prime
        assert result.reason == "even"
        assert result.rounds == ()

    def test_small_cases(self):
        """2 and 3 are accepted directly, n < 2 rejected."""
        assert miller_rabin(2).reason == "small"
        assert miller_rabin(3).is_prime
        assert not miller_rabin(1).is_prime
        assert not miller_rabin(-7).is_prime

    def test_decomposition_recorded(self):
        """n - 1 = 2^s * d with d odd."""
        n = 104729
        result = miller_rabin(n, rounds=3, rng=SeededRandomSource(3))
        assert result.is_prime
        assert 2 ** result.s * result.d == n - 1
        assert result.d % 2 == 1
        assert len(result.rounds) == 3
        for r in result.rounds:
            assert 2 <= r.witness <= n - 2
            assert r.x == pow(r.witness, result.d, n)
            assert r.passed

    def test_strong_liar_is_exposed_by_another_witness(self):
        """3215031751 fools base 2 but not base 11."""
        n = 3215031751  # 151 * 751 * 28351
        assert miller_rabin(n, rounds=1, rng=FixedWitnessSource(2)).is_prime
        result = miller_rabin(n, rounds=1, rng=FixedWitnessSource(11))
        assert not result.is_prime
        assert result.reason == "witness"
        assert not result.rounds[-1].passed

    def test_composite_stops_at_first_failing_round(self):
        """A failing witness ends the test immediately."""
        result = miller_rabin(3127, rounds=5, rng=FixedWitnessSource(2))
        assert not result.is_prime
        assert len(result.rounds) == 1

    def test_deterministic_with_seed(self):
        """Same seed, same witnesses."""
        a = miller_rabin(104729, rng=SeededRandomSource(9))
        b = miller_rabin(104729, rng=SeededRandomSource(9))
        assert a == b

    def test_invalid_rounds(self):
        """rounds <= 0 is a contract violation."""
        with pytest.raises(InvalidArgument):
            is_probable_prime(97, rounds=0)
        with pytest.raises(InvalidArgument):
            is_probable_prime(97, rounds=-1)


class TestPrimeGeneration:
    """Unit tests for prime generation."""

    @pytest.mark.parametrize("bits", [2, 3, 8, 16, 64, 256])
    def test_exact_bit_length(self, bits):
        """Generated primes pass the test and have exactly `bits` bits."""
        p = generate_prime(bits, rng=SeededRandomSource(bits))
        assert p.bit_length() == bits
        assert is_probable_prime(p, rounds=10, rng=SeededRandomSource(0))

    def test_search_records_rejections(self):
        """Rejected candidates are odd, of the right size, and composite."""
        search = search_prime(64, rng=SeededRandomSource(5))
        assert search.attempts == len(search.rejected) + 1
        assert search.verdict.is_prime
        assert search.verdict.n == search.prime
        for candidate in search.rejected:
            assert candidate % 2 == 1
            assert candidate.bit_length() == 64
            assert not is_probable_prime(candidate, rounds=10, rng=SeededRandomSource(0))

    def test_deterministic_with_seed(self):
        """Same seed, same prime and same history."""
        assert search_prime(128, rng=SeededRandomSource(11)) == \
            search_prime(128, rng=SeededRandomSource(11))

    def test_system_randomness(self):
        """Default source produces valid primes too."""
        p = generate_prime(32)
        assert p.bit_length() == 32
        assert is_probable_prime(p)

    def test_exhausted(self):
        """A bounded search over composites gives up."""
        # 2^15 + 1 = 32769 = 3^2 * 11 * 331
        with pytest.raises(PrimeGenerationExhausted):
            search_prime(16, rng=LowestCandidateSource(), max_attempts=3)

    def test_cancelled_immediately(self):
        """should_cancel is polled before the first draw."""
        with pytest.raises(GenerationCancelled):
            search_prime(64, should_cancel=lambda: True)

    def test_cancelled_after_some_candidates(self):
        """Cancellation mid-search."""
        polls = []

        def cancel():
            polls.append(1)
            return len(polls) > 2

        with pytest.raises(GenerationCancelled):
            search_prime(16, rng=LowestCandidateSource(), should_cancel=cancel)
        assert len(polls) == 3

    def test_not_cancelled_matches_plain_search(self):
        """A cancel hook that never fires does not change the result."""
        plain = search_prime(96, rng=SeededRandomSource(21))
        hooked = search_prime(96, rng=SeededRandomSource(21), should_cancel=lambda: False)
        assert plain == hooked

    def test_invalid_bits(self):
        """Bit length below 2 is rejected."""
        with pytest.raises(InvalidArgument):
            generate_prime(1)
        with pytest.raises(InvalidArgument):
            search_prime(16, max_attempts=0)


class TestRandomSources:
    """Unit tests for the randomness providers."""

    def test_seeded_sources_agree(self):
        """Two sources with the same seed produce the same stream."""
        a, b = SeededRandomSource(99), SeededRandomSource(99)
        assert [a.randint(2, 10 ** 30) for _ in range(5)] == \
            [b.randint(2, 10 ** 30) for _ in range(5)]

    def test_system_randint_bounds(self):
        """randint stays inside the closed range."""
        rng = SystemRandomSource()
        values = {rng.randint(2, 4) for _ in range(200)}
        assert values <= {2, 3, 4}

    def test_system_randint_empty_range(self):
        """Empty range is an error."""
        with pytest.raises(ValueError):
            SystemRandomSource().randint(5, 4)
