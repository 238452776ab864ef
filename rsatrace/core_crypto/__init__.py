# Core Crypto Module
"""
Number theory behind RSA, with step traces:
- Square-and-multiply modular exponentiation
- Miller-Rabin primality testing
- Prime generation
- Extended Euclidean Algorithm / modular inverse
- Injectable randomness sources
"""
