# RSA Module
"""
Traced textbook RSA:
- Key pair generation (p, q, n, phi, e, d) recorded step by step
- Text <-> integer conversion
- Encryption / decryption by square-and-multiply
- PEM import/export via `cryptography`

Every operation returns its result together with a Trace, an ordered list
of Steps a renderer can replay without recomputing anything.
"""

from .keys import PUBLIC_EXPONENT, KeyPair, PrivateKey, PublicKey
from .trace import Step, StepKind, Trace, KEY_GENERATION_KINDS
from .keygen import (
    KeyPairGenerator,
    KeyGenerationResult,
    generate_key_pair,
    DEFAULT_KEY_BITS,
    MIN_KEY_BITS,
    MAX_KEY_BITS,
)
from .text_codec import text_to_number, number_to_text
from .cipher import encrypt, decrypt, EncryptionResult, DecryptionResult

__all__ = [
    'KeyPair',
    'PublicKey',
    'PrivateKey',
    'PUBLIC_EXPONENT',
    'Step',
    'StepKind',
    'Trace',
    'KEY_GENERATION_KINDS',
    'KeyPairGenerator',
    'KeyGenerationResult',
    'generate_key_pair',
    'DEFAULT_KEY_BITS',
    'MIN_KEY_BITS',
    'MAX_KEY_BITS',
    'text_to_number',
    'number_to_text',
    'encrypt',
    'decrypt',
    'EncryptionResult',
    'DecryptionResult',
]
