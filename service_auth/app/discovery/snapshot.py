"""
Immutable view of one successfully retrieved discovery document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from jose import jwk
from jose.backends.base import Key

AUDIENCE_SEGMENT = "resources"

# Algorithms assumed for keys that do not advertise "alg"
_DEFAULT_ALGORITHMS = {
    ("RSA", None): "RS256",
    ("EC", "P-256"): "ES256",
    ("EC", "P-384"): "ES384",
    ("EC", "P-521"): "ES512",
    ("oct", None): "HS256",
}


def ensure_trailing_slash(value: str) -> str:
    if value.endswith("/"):
        return value
    return value + "/"


def audience_for(issuer: str) -> str:
    """Default resource audience of an issuer, e.g. ``https://idp/resources``."""
    return ensure_trailing_slash(issuer) + AUDIENCE_SEGMENT


def resolve_algorithm(jwk_data: Mapping[str, Any]) -> Optional[str]:
    """Return the declared algorithm of a JWK, or the conventional one for its type."""
    algorithm = jwk_data.get("alg")
    if algorithm:
        return algorithm
    kty = jwk_data.get("kty")
    crv = jwk_data.get("crv") if kty == "EC" else None
    return _DEFAULT_ALGORITHMS.get((kty, crv))


@dataclass(frozen=True)
class SigningKey:
    """Public verification key advertised by the authorization server."""

    key_id: Optional[str]
    algorithm: str
    key: Key = field(repr=False, compare=False)
    jwk: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_jwk(cls, jwk_data: Dict[str, Any]) -> "SigningKey":
        """Construct a verification key from a JWK.

        Raises:
            jose.exceptions.JWKError: when the key type or algorithm is unsupported
        """
        algorithm = resolve_algorithm(jwk_data)
        key = jwk.construct(jwk_data, algorithm=algorithm)
        return cls(
            key_id=jwk_data.get("kid"),
            algorithm=algorithm,
            key=key,
            jwk=MappingProxyType(dict(jwk_data)),
        )


@dataclass(frozen=True)
class Snapshot:
    """Issuer and signing keys from one discovery document.

    ``signing_keys`` keeps document order. The audience is derived from the
    issuer on every read rather than stored.
    """

    issuer: str
    signing_keys: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.issuer, str) or not self.issuer:
            raise ValueError("Snapshot issuer must be a non-empty string")
        if isinstance(self.signing_keys, (str, bytes)):
            raise TypeError("Snapshot signing_keys must be a sequence of keys, not a string")
        object.__setattr__(self, "signing_keys", tuple(self.signing_keys or ()))

    @property
    def audience(self) -> str:
        return audience_for(self.issuer)

    @property
    def key_ids(self) -> Tuple[Optional[str], ...]:
        return tuple(getattr(key, "key_id", None) for key in self.signing_keys)
