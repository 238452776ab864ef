"""RSA key containers."""

from dataclasses import dataclass

from ..errors import InvalidArgument


PUBLIC_EXPONENT = 65537  # 2^16 + 1, prime


@dataclass(frozen=True)
class PublicKey:
    """Public key (e, n)."""
    e: int
    n: int

    def __post_init__(self):
        if self.n <= 1:
            raise InvalidArgument("Modulus must be greater than 1")
        if self.e <= 1:
            raise InvalidArgument("Public exponent must be greater than 1")

    @property
    def key_size(self) -> int:
        return self.n.bit_length()

    def as_tuple(self):
        return self.e, self.n


@dataclass(frozen=True)
class PrivateKey:
    """Private key (d, n)."""
    d: int
    n: int

    def __post_init__(self):
        if self.n <= 1:
            raise InvalidArgument("Modulus must be greater than 1")
        if self.d <= 0:
            raise InvalidArgument("Private exponent must be positive")

    @property
    def key_size(self) -> int:
        return self.n.bit_length()

    def as_tuple(self):
        return self.d, self.n

    def __repr__(self) -> str:
        return f"PrivateKey(bits={self.key_size})"


@dataclass(frozen=True)
class KeyPair:
    """
    RSA key pair container with convenient methods.

    Example:
        >>> from rsatrace.rsa.keygen import generate_key_pair
        >>> key_pair = generate_key_pair(512).key_pair
        >>> ciphertext = key_pair.encrypt("hi").ciphertext
        >>> key_pair.decrypt(ciphertext).message
        'hi'
    """
    public_key: PublicKey
    private_key: PrivateKey

    def __post_init__(self):
        if self.public_key.n != self.private_key.n:
            raise InvalidArgument("Public and private key must share the modulus n")

    @property
    def modulus(self) -> int:
        return self.public_key.n

    @property
    def public_exponent(self) -> int:
        return self.public_key.e

    @property
    def private_exponent(self) -> int:
        return self.private_key.d

    @property
    def key_size(self) -> int:
        return self.public_key.key_size

    def encrypt(self, message: str):
        """Encrypt a text message with the public key."""
        from .cipher import encrypt
        return encrypt(message, self.public_key)

    def decrypt(self, ciphertext):
        """Decrypt a ciphertext (decimal string or int) with the private key."""
        from .cipher import decrypt
        return decrypt(ciphertext, self.private_key)

    def __repr__(self) -> str:
        return f"KeyPair(bits={self.key_size}, e={self.public_exponent})"
