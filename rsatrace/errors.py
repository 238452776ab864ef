"""
Exceptions raised by rsatrace.

Every error derives from RSATraceError and from the builtin exception it
specialises, so callers that only know about ValueError or RuntimeError
still catch them.
"""


class RSATraceError(Exception):
    """Base class for all rsatrace errors."""
    pass


class InvalidArgument(RSATraceError, ValueError):
    """Raised when an input breaks a function's contract (bad modulus, key size, rounds...)."""
    pass


class MessageTooLarge(RSATraceError, ValueError):
    """Raised when the encoded plaintext is not smaller than the modulus."""
    pass


class PrimeGenerationExhausted(RSATraceError, RuntimeError):
    """Raised when a bounded prime search runs out of attempts."""
    pass


class GcdFailure(RSATraceError, ArithmeticError):
    """Raised when a required inverse does not exist (gcd != 1)."""
    pass


class GenerationCancelled(RSATraceError, RuntimeError):
    """Raised when a cooperative cancellation check stops a prime search."""
    pass
