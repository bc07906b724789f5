"""
Discovery metadata package.

Caches the issuer, default audience and signing keys published by an
OpenID Connect authorization server so bearer tokens can be validated
without contacting it on every request.

Key points:
- One MetadataCache per discovery endpoint, constructed explicitly and
  handed to the token validation layer.
- At most one fetch in flight; concurrent callers reuse its result.
- A failed refresh never replaces or clears previously good metadata.
"""

from .cache import MetadataCache
from .fetcher import DiscoveryDocument, HttpMetadataFetcher, MetadataFetcher
from .snapshot import SigningKey, Snapshot, audience_for, ensure_trailing_slash

__all__ = [
    "DiscoveryDocument",
    "HttpMetadataFetcher",
    "MetadataCache",
    "MetadataFetcher",
    "SigningKey",
    "Snapshot",
    "audience_for",
    "ensure_trailing_slash",
]
