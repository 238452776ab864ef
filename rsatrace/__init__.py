"""
rsatrace - RSA key generation, encryption and decryption that records
every intermediate arithmetic step for step-by-step playback.
"""

__version__ = "1.0.0"
