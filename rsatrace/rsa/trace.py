"""
Computation Trace Module

A Trace is the ordered record of every stage of an RSA computation:
- Key generation (primes, modulus, totient, public and private exponent)
- Message conversion (text <-> integer)
- Encryption and decryption (square-and-multiply)

Each Step carries a kind and a payload holding every intermediate value
needed to display that stage. Replaying a trace never recomputes anything.

Step payloads form a closed set: every StepKind accepts exactly one payload
class, checked when the Step is built, so a renderer can pattern-match on
`kind` and rely on the payload's fields.

Serialised form (to_list / to_json):
    [{"kind": "...", "description": "...", "data": {...}}, ...]
with every integer rendered as a decimal string.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Type, Union

from ..core_crypto.rsa_math import (
    EuclidStep,
    ModPowResult,
    ModPowStep,
    PrimeSearch,
    to_decimal,
)
from ..errors import InvalidArgument


# ============================================================================
# Step Kinds
# ============================================================================

class StepKind(Enum):
    """Stages a trace can record."""

    # Key generation
    PRIME_GENERATION = "primeGeneration"
    MODULUS_CALCULATION = "modulusCalculation"
    TOTIENT_CALCULATION = "totientCalculation"
    PUBLIC_EXPONENT = "publicExponent"
    PRIVATE_EXPONENT = "privateExponent"

    # Encryption / decryption
    MESSAGE_CONVERSION = "messageConversion"
    ENCRYPTION = "encryption"
    DECRYPTION = "decryption"


KEY_GENERATION_KINDS = (
    StepKind.PRIME_GENERATION,
    StepKind.MODULUS_CALCULATION,
    StepKind.TOTIENT_CALCULATION,
    StepKind.PUBLIC_EXPONENT,
    StepKind.PRIVATE_EXPONENT,
)


# ============================================================================
# Payloads
# ============================================================================

@dataclass(frozen=True)
class PrimeGenerationData:
    """Both prime searches; bits is the size of each prime."""
    bits: int
    p: PrimeSearch
    q: PrimeSearch

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bits': self.bits,
            'p': self.p.to_dict(),
            'q': self.q.to_dict(),
            'isPrime': {'p': self.p.verdict.is_prime, 'q': self.q.verdict.is_prime},
        }


@dataclass(frozen=True)
class ModulusCalculationData:
    p: int
    q: int
    n: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'p': to_decimal(self.p),
            'q': to_decimal(self.q),
            'n': to_decimal(self.n),
            'bit_length': self.n.bit_length(),
        }


@dataclass(frozen=True)
class TotientCalculationData:
    p: int
    q: int
    p_minus_1: int
    q_minus_1: int
    phi: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'p': to_decimal(self.p),
            'q': to_decimal(self.q),
            'p_minus_1': to_decimal(self.p_minus_1),
            'q_minus_1': to_decimal(self.q_minus_1),
            'phi': to_decimal(self.phi),
        }


@dataclass(frozen=True)
class PublicExponentData:
    """
    Coprimality check of e and phi.

    regenerations counts how many prime pairs were thrown away because
    gcd(e, phi) != 1 before this one.
    """
    e: int
    phi: int
    gcd: int
    x: int
    y: int
    steps: Tuple[EuclidStep, ...]
    regenerations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'e': to_decimal(self.e),
            'phi': to_decimal(self.phi),
            'gcd': to_decimal(self.gcd),
            'x': to_decimal(self.x),
            'y': to_decimal(self.y),
            'steps': [s.to_dict() for s in self.steps],
            'regenerations': self.regenerations,
        }


@dataclass(frozen=True)
class PrivateExponentData:
    e: int
    phi: int
    d: int
    ed_mod_phi: int

    @property
    def verified(self) -> bool:
        return self.ed_mod_phi == 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'e': to_decimal(self.e),
            'phi': to_decimal(self.phi),
            'd': to_decimal(self.d),
            'verification': {
                'ed_mod_phi': to_decimal(self.ed_mod_phi),
                'verified': self.verified,
            },
        }


@dataclass(frozen=True)
class ByteFoldStep:
    """
    text -> number: value = previous * 256 + byte.

    char is the character the byte was encoded from (a multibyte character
    shows up on each of its bytes); None when the encoding is stateful.
    """
    index: int
    byte: int
    previous: int
    value: int
    char: Optional[str] = None
    char_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'char': self.char,
            'charIndex': self.char_index,
            'byte': self.byte,
            'previous': to_decimal(self.previous),
            'value': to_decimal(self.value),
        }


@dataclass(frozen=True)
class ByteExtractStep:
    """number -> text: byte = number mod 256, remaining = number // 256."""
    byte: int
    remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'byte': self.byte,
            'remaining': to_decimal(self.remaining),
        }


@dataclass(frozen=True)
class MessageConversionData:
    """direction is "encode" (text -> number) or "decode" (number -> text)."""
    direction: str
    message: str
    number: int
    encoded: bytes
    steps: Tuple[Union[ByteFoldStep, ByteExtractStep], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction,
            'message': self.message,
            'number': to_decimal(self.number),
            'bytes': self.encoded.hex(),
            'steps': [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class ExponentiationData:
    """base^exponent mod modulus, shared by the encryption and decryption kinds."""
    base: int
    exponent: int
    modulus: int
    result: int
    binary_exponent: str
    steps: Tuple[ModPowStep, ...]

    @classmethod
    def from_result(cls, result: ModPowResult) -> 'ExponentiationData':
        return cls(
            base=result.base,
            exponent=result.exponent,
            modulus=result.modulus,
            result=result.result,
            binary_exponent=result.binary_exponent,
            steps=result.steps,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base': to_decimal(self.base),
            'exponent': to_decimal(self.exponent),
            'modulus': to_decimal(self.modulus),
            'result': to_decimal(self.result),
            'binary_exponent': self.binary_exponent,
            'steps': [s.to_dict() for s in self.steps],
        }


StepData = Union[
    PrimeGenerationData,
    ModulusCalculationData,
    TotientCalculationData,
    PublicExponentData,
    PrivateExponentData,
    MessageConversionData,
    ExponentiationData,
]

PAYLOAD_TYPES: Dict[StepKind, Type] = {
    StepKind.PRIME_GENERATION: PrimeGenerationData,
    StepKind.MODULUS_CALCULATION: ModulusCalculationData,
    StepKind.TOTIENT_CALCULATION: TotientCalculationData,
    StepKind.PUBLIC_EXPONENT: PublicExponentData,
    StepKind.PRIVATE_EXPONENT: PrivateExponentData,
    StepKind.MESSAGE_CONVERSION: MessageConversionData,
    StepKind.ENCRYPTION: ExponentiationData,
    StepKind.DECRYPTION: ExponentiationData,
}


# ============================================================================
# Step and Trace
# ============================================================================

@dataclass(frozen=True)
class Step:
    """One recorded stage: kind, human readable description, payload."""
    kind: StepKind
    description: str
    data: StepData

    def __post_init__(self):
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.data, expected):
            raise InvalidArgument(
                f"{self.kind.value} step needs {expected.__name__}, "
                f"got {type(self.data).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'description': self.description,
            'data': self.data.to_dict(),
        }


class Trace:
    """
    Append-only, ordered sequence of Steps.

    Insertion order is computation order. Steps themselves are frozen, and
    the trace offers no way to remove or reorder them.

    Example:
        >>> trace = Trace()
        >>> len(trace)
        0
    """

    def __init__(self, steps: Optional[Iterable[Step]] = None):
        self._steps: List[Step] = []
        if steps is not None:
            self.extend(steps)

    def append(self, step: Step) -> None:
        if not isinstance(step, Step):
            raise InvalidArgument(f"Trace only holds Step records, got {type(step).__name__}")
        self._steps.append(step)

    def extend(self, steps: Iterable[Step]) -> None:
        for step in steps:
            self.append(step)

    def record(self, kind: StepKind, description: str, data: StepData) -> Step:
        """Build a Step and append it."""
        step = Step(kind, description, data)
        self.append(step)
        return step

    @property
    def steps(self) -> Tuple[Step, ...]:
        return tuple(self._steps)

    def kinds(self) -> List[StepKind]:
        return [s.kind for s in self._steps]

    def of_kind(self, kind: StepKind) -> List[Step]:
        return [s for s in self._steps if s.kind is kind]

    def first(self, kind: StepKind) -> Step:
        """First step of the given kind; KeyError if there is none."""
        for step in self._steps:
            if step.kind is kind:
                return step
        raise KeyError(kind.value)

    def to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self._steps]

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_list(), indent=indent, ensure_ascii=False)

    def __iter__(self) -> Iterator[Step]:
        return iter(tuple(self._steps))

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Trace):
            return NotImplemented
        return self._steps == other._steps

    def __repr__(self) -> str:
        return f"Trace({', '.join(k.value for k in self.kinds())})"
