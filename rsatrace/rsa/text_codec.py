"""
Text <-> integer conversion for textbook RSA.

The text is encoded (UTF-8 by default) and the bytes are read as one
big-endian integer. There is no padding and no chunking: a message only
survives encryption if its integer is smaller than the modulus, and leading
NUL bytes are lost on the way back.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..errors import InvalidArgument
from .trace import ByteExtractStep, ByteFoldStep


DEFAULT_ENCODING = "utf-8"
BYTE_BASE = 256


@dataclass(frozen=True)
class CodecResult:
    text: str
    number: int
    encoded: bytes
    steps: Tuple[Union[ByteFoldStep, ByteExtractStep], ...]


def replace_lone_surrogates(text: str) -> str:
    """Swap unpaired UTF-16 surrogates for U+FFFD; paired ones are joined."""
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")


def _encode(text: str, encoding: str) -> bytes:
    try:
        return text.encode(encoding)
    except LookupError as exc:
        raise InvalidArgument(f"Unknown text encoding: {encoding!r}") from exc
    except UnicodeEncodeError as exc:
        raise InvalidArgument(
            f"Character {exc.object[exc.start:exc.end]!r} at position {exc.start} "
            f"cannot be encoded as {encoding}"
        ) from exc


def _byte_sources(text: str, encoded: bytes, encoding: str) -> List[Tuple[Optional[int], Optional[str]]]:
    """(char_index, char) for every byte of `encoded`, or Nones if the codec is stateful."""
    chunks = [char.encode(encoding) for char in text]
    if b"".join(chunks) != encoded:
        return [(None, None)] * len(encoded)
    return [(char_index, text[char_index]) for char_index, chunk in enumerate(chunks) for _ in chunk]


def text_to_number(text: str, encoding: str = DEFAULT_ENCODING) -> CodecResult:
    """
    Fold the encoded bytes of `text` into an integer, most significant first.

    num = num * 256 + byte, one ByteFoldStep per byte. Each step names the
    character the byte came from. Lone surrogates are encoded as U+FFFD.

    Raises:
        InvalidArgument: If text is not a str, or cannot be represented in
            the requested encoding
    """
    if not isinstance(text, str):
        raise InvalidArgument(f"Expected text, got {type(text).__name__}")

    text = replace_lone_surrogates(text)
    encoded = _encode(text, encoding)
    number = 0
    steps: List[ByteFoldStep] = []

    for index, (byte, (char_index, char)) in enumerate(
        zip(encoded, _byte_sources(text, encoded, encoding))
    ):
        previous = number
        number = number * BYTE_BASE + byte
        steps.append(ByteFoldStep(index, byte, previous, number, char=char, char_index=char_index))

    return CodecResult(text=text, number=number, encoded=encoded, steps=tuple(steps))


def number_to_text(number: int, encoding: str = DEFAULT_ENCODING) -> CodecResult:
    """
    Inverse of text_to_number.

    Peels bytes off the least significant end (number mod 256) until nothing
    is left, then decodes. Undecodable bytes (for instance after decrypting
    with the wrong key) become U+FFFD instead of raising.
    """
    if isinstance(number, bool) or not isinstance(number, int):
        raise InvalidArgument(f"Expected an integer, got {type(number).__name__}")
    if number < 0:
        raise InvalidArgument("Cannot convert a negative integer to text")

    remaining = number
    collected: List[int] = []
    steps: List[ByteExtractStep] = []

    while remaining > 0:
        byte = remaining % BYTE_BASE
        collected.append(byte)
        remaining //= BYTE_BASE
        steps.append(ByteExtractStep(byte, remaining))

    encoded = bytes(reversed(collected))
    try:
        text = encoded.decode(encoding, errors="replace")
    except LookupError as exc:
        raise InvalidArgument(f"Unknown text encoding: {encoding!r}") from exc
    return CodecResult(text=text, number=number, encoded=encoded, steps=tuple(steps))
