"""
Unit tests for the Trace data model.

Tests:
- Step payload checking (one payload class per kind)
- Append-only behaviour
- Serialisation (decimal strings, JSON)
"""

import json

import pytest
from rsatrace.core_crypto.randomness import SeededRandomSource
from rsatrace.core_crypto.rsa_math import mod_pow
from rsatrace.rsa.keygen import generate_key_pair
from rsatrace.rsa.trace import (
    Step, StepKind, Trace, ModulusCalculationData, ExponentiationData,
    PrivateExponentData, PAYLOAD_TYPES,
)
from rsatrace.errors import InvalidArgument


@pytest.fixture(scope="module")
def keygen_trace():
    return generate_key_pair(128, rng=SeededRandomSource(42)).trace


class TestStep:
    """Tests for Step records."""

    def test_every_kind_has_a_payload(self):
        """The payload table covers every StepKind."""
        assert set(PAYLOAD_TYPES) == set(StepKind)

    def test_wrong_payload_rejected(self):
        """A payload of another kind is refused."""
        data = ModulusCalculationData(p=61, q=53, n=3233)
        with pytest.raises(InvalidArgument):
            Step(StepKind.TOTIENT_CALCULATION, "phi", data)

    def test_exponentiation_shared_by_encrypt_and_decrypt(self):
        """encryption and decryption carry the same payload class."""
        data = ExponentiationData.from_result(mod_pow(65, 17, 3233))
        assert Step(StepKind.ENCRYPTION, "enc", data).data.result == 2790
        assert Step(StepKind.DECRYPTION, "dec", data).kind is StepKind.DECRYPTION

    def test_step_is_frozen(self):
        """Steps cannot be modified."""
        step = Step(StepKind.MODULUS_CALCULATION, "n", ModulusCalculationData(61, 53, 3233))
        with pytest.raises(AttributeError):
            step.description = "changed"

    def test_verification_flag(self):
        """verified follows ed_mod_phi."""
        assert PrivateExponentData(e=17, phi=3120, d=2753, ed_mod_phi=1).verified
        assert not PrivateExponentData(e=17, phi=3120, d=2752, ed_mod_phi=3104).verified


class TestTrace:
    """Tests for the append-only trace."""

    def test_append_and_order(self):
        """Insertion order is preserved."""
        trace = Trace()
        trace.record(StepKind.MODULUS_CALCULATION, "n", ModulusCalculationData(61, 53, 3233))
        trace.record(StepKind.ENCRYPTION, "c",
                     ExponentiationData.from_result(mod_pow(65, 17, 3233)))
        assert trace.kinds() == [StepKind.MODULUS_CALCULATION, StepKind.ENCRYPTION]
        assert len(trace) == 2
        assert trace[0].data.n == 3233

    def test_only_steps_accepted(self):
        """Arbitrary objects cannot be appended."""
        with pytest.raises(InvalidArgument):
            Trace().append({'kind': 'encryption'})

    def test_steps_snapshot_is_immutable(self):
        """steps returns a tuple; changing it is impossible."""
        trace = Trace()
        assert isinstance(trace.steps, tuple)

    def test_of_kind_and_first(self, keygen_trace):
        """Lookup by kind."""
        assert len(keygen_trace.of_kind(StepKind.PUBLIC_EXPONENT)) == 1
        assert keygen_trace.of_kind(StepKind.ENCRYPTION) == []
        with pytest.raises(KeyError):
            keygen_trace.first(StepKind.DECRYPTION)

    def test_copy_from_iterable(self, keygen_trace):
        """A trace built from another trace's steps is equal to it."""
        assert Trace(keygen_trace) == keygen_trace


class TestSerialisation:
    """Tests for the renderer-facing dictionary / JSON shape."""

    def test_record_shape(self, keygen_trace):
        """Every record is {kind, description, data}."""
        records = keygen_trace.to_list()
        assert [r['kind'] for r in records] == [
            'primeGeneration', 'modulusCalculation', 'totientCalculation',
            'publicExponent', 'privateExponent',
        ]
        for record in records:
            assert set(record) == {'kind', 'description', 'data'}
            assert isinstance(record['description'], str)

    def test_integers_are_decimal_strings(self, keygen_trace):
        """Big values cross the boundary as strings."""
        records = {r['kind']: r['data'] for r in keygen_trace.to_list()}
        modulus = records['modulusCalculation']
        assert isinstance(modulus['n'], str)
        assert int(modulus['n']) == int(modulus['p']) * int(modulus['q'])

        public = records['publicExponent']
        assert public['e'] == '65537'
        assert all(isinstance(v, str) for s in public['steps'] for v in s.values())

        private = records['privateExponent']
        assert private['verification']['ed_mod_phi'] == '1'
        assert private['verification']['verified'] is True

        primes = records['primeGeneration']
        assert primes['isPrime'] == {'p': True, 'q': True}
        assert isinstance(primes['p']['prime'], str)

    def test_json_round_trips_through_loads(self, keygen_trace):
        """to_json is plain JSON equal to to_list."""
        assert json.loads(keygen_trace.to_json()) == keygen_trace.to_list()

    def test_exponentiation_steps_serialised(self):
        """Square-and-multiply rows keep their operation and bit."""
        data = ExponentiationData.from_result(mod_pow(4, 13, 497))
        rows = Step(StepKind.ENCRYPTION, "x", data).to_dict()['data']['steps']
        assert [r['operation'] for r in rows] == [
            'init', 'square', 'multiply', 'square', 'multiply',
            'square', 'square', 'multiply',
        ]
        assert rows[-1]['result'] == '445'
        assert rows[0]['bit'] is None
