"""CI provider access module.

This module handles:
- Listing builds and artifacts through the CircleCI v1.1 API
- Validating provider payloads
- Mapping transport and decode failures to structured errors
"""

from coverage_shortcuts.ci.client import (
    CIClient,
    CIClientError,
    DecodeError,
    TransportError,
)

__all__ = ["CIClient", "CIClientError", "DecodeError", "TransportError"]
