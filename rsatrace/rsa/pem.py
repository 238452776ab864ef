"""
PEM import/export of rsatrace keys through the `cryptography` package.

A PrivateKey only stores (d, n); the prime factors needed for a PKCS#8
document are recovered from (n, e, d), so exporting a private key needs the
whole KeyPair.

OpenSSL refuses moduli below PEM_MIN_KEY_BITS and exponents outside
[3, n), so such keys are rejected before any numbers are built. Every
failure inside `cryptography` surfaces as InvalidArgument.
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import InvalidArgument
from .keys import KeyPair, PrivateKey, PublicKey


PEM_MIN_KEY_BITS = 512


def _check_exportable(public_key: PublicKey) -> None:
    bits = public_key.n.bit_length()
    if bits < PEM_MIN_KEY_BITS:
        raise InvalidArgument(
            f"PEM export needs a modulus of at least {PEM_MIN_KEY_BITS} bits, got {bits}"
        )
    if not 3 <= public_key.e < public_key.n:
        raise InvalidArgument("PEM export needs 3 <= e < n")


def public_key_to_pem(public_key: PublicKey) -> bytes:
    """SubjectPublicKeyInfo PEM for (e, n)."""
    _check_exportable(public_key)
    try:
        key = rsa.RSAPublicNumbers(public_key.e, public_key.n).public_key()
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidArgument(f"Cannot export public key: {exc}") from exc
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def private_key_to_pem(key_pair: KeyPair) -> bytes:
    """Unencrypted PKCS#8 PEM for the key pair."""
    _check_exportable(key_pair.public_key)
    e, n = key_pair.public_key.e, key_pair.modulus
    d = key_pair.private_key.d

    try:
        p, q = rsa.rsa_recover_prime_factors(n, e, d)
        numbers = rsa.RSAPrivateNumbers(
            p=p,
            q=q,
            d=d,
            dmp1=rsa.rsa_crt_dmp1(d, p),
            dmq1=rsa.rsa_crt_dmq1(d, q),
            iqmp=rsa.rsa_crt_iqmp(p, q),
            public_numbers=rsa.RSAPublicNumbers(e, n),
        )
        key = numbers.private_key()
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidArgument(f"Cannot export private key: {exc}") from exc
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_key_from_pem(data: bytes) -> PublicKey:
    """Load a PEM public key into a PublicKey."""
    try:
        key = serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise InvalidArgument(f"Cannot load public key: {exc}") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidArgument("PEM document does not hold an RSA public key")
    numbers = key.public_numbers()
    return PublicKey(numbers.e, numbers.n)


def key_pair_from_pem(data: bytes) -> KeyPair:
    """Load an unencrypted PEM private key into a KeyPair."""
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        # TypeError: the document is password protected
        raise InvalidArgument(f"Cannot load private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidArgument("PEM document does not hold an RSA private key")
    numbers = key.private_numbers()
    public = numbers.public_numbers
    return KeyPair(PublicKey(public.e, public.n), PrivateKey(numbers.d, public.n))
