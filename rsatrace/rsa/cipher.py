"""
Textbook RSA encryption and decryption of text messages.

encrypt:  message -> M (text_to_number) -> C = M^e mod n
          trace: messageConversion, encryption
decrypt:  C -> M = C^d mod n -> message (number_to_text)
          trace: decryption, messageConversion

No padding, no chunking: the whole message must encode to an integer
smaller than n, otherwise MessageTooLarge is raised.
"""

import logging
from dataclasses import dataclass
from typing import Union

from ..core_crypto.rsa_math import mod_pow
from ..errors import InvalidArgument, MessageTooLarge
from .keys import PrivateKey, PublicKey
from .text_codec import DEFAULT_ENCODING, number_to_text, text_to_number
from .trace import ExponentiationData, MessageConversionData, StepKind, Trace


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptionResult:
    """Ciphertext as a decimal string, the same value as an int, and the trace."""
    ciphertext: str
    number: int
    trace: Trace


@dataclass(frozen=True)
class DecryptionResult:
    """Recovered message, the plaintext integer M, and the trace."""
    message: str
    number: int
    trace: Trace


def parse_ciphertext(ciphertext: Union[str, int], modulus: int) -> int:
    """
    Turn a decimal-string (or int) ciphertext into an int in [0, modulus).

    Raises:
        InvalidArgument: If the value is not a decimal integer or out of range
    """
    if isinstance(ciphertext, bool):
        raise InvalidArgument("Ciphertext must be a decimal string or an integer")
    if isinstance(ciphertext, int):
        value = ciphertext
    elif isinstance(ciphertext, str):
        text = ciphertext.strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidArgument(f"Ciphertext is not a decimal integer: {ciphertext!r}")
        value = int(text)
    else:
        raise InvalidArgument("Ciphertext must be a decimal string or an integer")

    if not 0 <= value < modulus:
        raise InvalidArgument("Ciphertext representative out of range")
    return value


def encrypt(message: str, public_key: PublicKey,
            encoding: str = DEFAULT_ENCODING) -> EncryptionResult:
    """
    Encrypt a text message with the public key (e, n).

    Raises:
        MessageTooLarge: If the encoded message is not smaller than n
    """
    e, n = public_key.e, public_key.n

    conversion = text_to_number(message, encoding)
    m = conversion.number
    if m >= n:
        raise MessageTooLarge(
            f"Message encodes to {m.bit_length()} bits but the modulus has "
            f"{n.bit_length()} bits; the integer must be smaller than n"
        )

    exponentiation = mod_pow(m, e, n)

    trace = Trace()
    trace.record(
        StepKind.MESSAGE_CONVERSION,
        "Converting message to number",
        MessageConversionData(
            direction="encode",
            message=conversion.text,
            number=m,
            encoded=conversion.encoded,
            steps=conversion.steps,
        ),
    )
    trace.record(
        StepKind.ENCRYPTION,
        "Performing modular exponentiation",
        ExponentiationData.from_result(exponentiation),
    )

    c = exponentiation.result
    logger.info(
        "Encrypted %d-byte message (%d squarings, %d multiplications)",
        len(conversion.encoded), exponentiation.squarings, exponentiation.multiplications,
    )
    return EncryptionResult(ciphertext=str(c), number=c, trace=trace)


def decrypt(ciphertext: Union[str, int], private_key: PrivateKey,
            encoding: str = DEFAULT_ENCODING) -> DecryptionResult:
    """
    Decrypt a ciphertext with the private key (d, n).

    Raises:
        InvalidArgument: If the ciphertext is malformed or not in [0, n)
    """
    d, n = private_key.d, private_key.n
    c = parse_ciphertext(ciphertext, n)

    exponentiation = mod_pow(c, d, n)
    m = exponentiation.result
    conversion = number_to_text(m, encoding)

    trace = Trace()
    trace.record(
        StepKind.DECRYPTION,
        "Performing modular exponentiation",
        ExponentiationData.from_result(exponentiation),
    )
    trace.record(
        StepKind.MESSAGE_CONVERSION,
        "Converting number to message",
        MessageConversionData(
            direction="decode",
            message=conversion.text,
            number=m,
            encoded=conversion.encoded,
            steps=conversion.steps,
        ),
    )

    logger.info("Decrypted %d-byte message", len(conversion.encoded))
    return DecryptionResult(message=conversion.text, number=m, trace=trace)
