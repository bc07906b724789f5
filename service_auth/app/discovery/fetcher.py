"""
Retrieval of OpenID Connect discovery documents over HTTP.
"""

from __future__ import annotations

import ssl
from typing import Any, Callable, List, Optional, Protocol, Union, runtime_checkable

import httpx
from jose.exceptions import JOSEError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shared.errors import ConfigurationError, MalformedDocument, NoSigningKeys, TransportError
from shared.logging import get_logger

from .snapshot import SigningKey, Snapshot

CertificateValidator = Callable[[ssl.SSLContext], None]


@runtime_checkable
class MetadataFetcher(Protocol):
    """Anything able to turn a discovery endpoint into a Snapshot.

    Implementations raise a ``shared.errors.FetchError`` subclass on failure
    and must be safe to call repeatedly.
    """

    def fetch(self, endpoint: str) -> Snapshot:
        ...


class DiscoveryDocument(BaseModel):
    """The subset of the discovery document the cache relies on."""

    model_config = ConfigDict(extra="allow")

    issuer: str = Field(min_length=1)
    jwks_uri: str = Field(min_length=1)
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    userinfo_endpoint: Optional[str] = None
    id_token_signing_alg_values_supported: List[str] = []


class HttpMetadataFetcher:
    """Fetch discovery documents and their key sets with a shared httpx client."""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        *,
        timeout: float = 10.0,
        verify: Union[bool, str] = True,
        certificate_validator: Optional[CertificateValidator] = None,
    ) -> None:
        self.logger = get_logger("auth.discovery.fetcher")

        if http_client is not None:
            if certificate_validator is not None:
                raise ConfigurationError(
                    "A certificate validator cannot be applied to a caller-supplied HTTP client"
                )
            self._client = http_client
            self._owns_client = False
        else:
            self._client = httpx.Client(
                timeout=timeout,
                verify=self._build_verify(verify, certificate_validator),
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
            self._owns_client = True

    @staticmethod
    def _build_verify(verify: Union[bool, str],
                      certificate_validator: Optional[CertificateValidator]) -> Union[bool, ssl.SSLContext]:
        """Resolve TLS settings, handing the SSL context to the validator hook."""
        if certificate_validator is None and not isinstance(verify, str):
            return verify

        context = ssl.create_default_context(cafile=verify if isinstance(verify, str) else None)
        if verify is False:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if certificate_validator is not None:
            certificate_validator(context)
        return context

    def fetch(self, endpoint: str) -> Snapshot:
        """Retrieve the discovery document at ``endpoint`` and its signing keys."""
        payload = self._get_json(endpoint)
        try:
            document = DiscoveryDocument.model_validate(payload)
        except ValidationError as exc:
            raise MalformedDocument(
                endpoint,
                "Discovery document is missing required fields",
                details={"errors": [
                    ".".join(str(part) for part in error["loc"]) + ": " + error["msg"]
                    for error in exc.errors()
                ]},
            ) from exc

        keys = self._decode_keys(self._get_json(document.jwks_uri), document.jwks_uri)
        if not keys:
            raise NoSigningKeys(endpoint)

        return Snapshot(issuer=document.issuer, signing_keys=tuple(keys))

    def _get_json(self, url: str) -> Any:
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise TransportError(
                url, f"Discovery request returned HTTP {status_code}", status_code=status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(url, f"Discovery request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedDocument(url, "Response body is not valid JSON") from exc

    def _decode_keys(self, payload: Any, jwks_uri: str) -> List[SigningKey]:
        """Build verification keys from a JWK Set, keeping document order."""
        if not isinstance(payload, dict) or not isinstance(payload.get("keys"), list):
            raise MalformedDocument(jwks_uri, "JWKS response missing 'keys' array")

        keys: List[SigningKey] = []
        for entry in payload["keys"]:
            if not isinstance(entry, dict):
                self.logger.warning("Ignoring non-object JWKS entry", jwks_uri=jwks_uri)
                continue
            # skip encryption keys
            if entry.get("use", "sig") != "sig":
                continue
            try:
                keys.append(SigningKey.from_jwk(entry))
            except (JOSEError, ValueError, TypeError) as exc:
                self.logger.warning(
                    "Ignoring unusable JWKS entry",
                    jwks_uri=jwks_uri,
                    kid=entry.get("kid"),
                    error=str(exc)
                )
        return keys

    def close(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpMetadataFetcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

