"""Security module for gridserve.

Capability tokens replace ambient authorization on the blob endpoints:
- Signing: HMAC-signed, purpose-scoped, optionally expiring claims
"""

from gridserve.security.capability import (
    CapabilitySigner,
    InvalidCapability,
    Purpose,
    generate_secret_key,
)

__all__ = [
    "CapabilitySigner",
    "InvalidCapability",
    "Purpose",
    "generate_secret_key",
]
