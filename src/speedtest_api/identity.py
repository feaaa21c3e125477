"""
Caller identity as established by the upstream authentication proxy.

The proxy authenticates the user and forwards their address in a request
header. This service trusts that header and does nothing else to verify it.
"""
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from .config import IDENTITY_HEADER


class IdentityProvider(ABC):
    """Resolves the caller's address from request headers."""

    @abstractmethod
    def resolve(self, headers: Mapping[str, str]) -> Optional[str]:
        """Return the caller's address, or None for an anonymous caller."""


class HeaderIdentityProvider(IdentityProvider):
    """Reads the address from a single header; blank means anonymous."""

    def __init__(self, header_name: str = IDENTITY_HEADER):
        self.header_name = header_name

    def resolve(self, headers: Mapping[str, str]) -> Optional[str]:
        address = headers.get(self.header_name)
        if address is None:
            return None
        address = address.strip()
        return address or None
