"""IPsec security policy and association databases with SHA-1 and HMAC-SHA1."""

__version__ = "0.1.0"
__all__ = ["sha1", "sad", "spd", "databases"]