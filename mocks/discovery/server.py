"""
Mock authorization server publishing a discovery document and JWKS.
"""

from typing import Dict, Any, List
from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from shared.logging import get_logger
from shared.test_helpers import TestKeyPair, test_key_factory, discovery_document_factory

# Failure modes the server can be switched into
MODE_OK = "ok"
MODE_OUTAGE = "outage"
MODE_MALFORMED = "malformed"
MODE_NO_KEYS = "no_keys"


class MockDiscoveryServer:
    """Mock OIDC authorization server implementation."""

    def __init__(self, port: int = 8080, realm: str = "access"):
        self.port = port
        self.realm = realm
        self.logger = get_logger("mock.discovery")
        self.app = FastAPI(title="Mock Discovery", version="1.0.0")

        self.issuer = f"http://localhost:{port}/realms/{self.realm}"
        self.mode = MODE_OK
        self.request_counts: Dict[str, int] = {"configuration": 0, "certs": 0}
        self.key_pairs: List[TestKeyPair] = [test_key_factory.create_rsa_key_pair("mock-key-1")]

        self._setup_routes()

    @property
    def discovery_endpoint(self) -> str:
        return f"{self.issuer}/.well-known/openid-configuration"

    @property
    def jwks(self) -> Dict[str, Any]:
        return discovery_document_factory.create_key_set(
            [pair.public_jwk for pair in self.key_pairs]
        )

    def rotate_keys(self, kid: str) -> TestKeyPair:
        """Publish a new signing key ahead of the existing ones."""
        pair = test_key_factory.create_rsa_key_pair(kid)
        self.key_pairs.insert(0, pair)
        self.logger.info("Signing keys rotated", kid=kid, keys_count=len(self.key_pairs))
        return pair

    def _check(self, realm: str) -> None:
        if realm != self.realm:
            raise HTTPException(status_code=404, detail="Realm not found")
        if self.mode == MODE_OUTAGE:
            raise HTTPException(status_code=503, detail="Authorization server unavailable")

    def _setup_routes(self):
        """Set up mock discovery routes."""

        @self.app.get("/realms/{realm}/.well-known/openid-configuration")
        async def openid_configuration(realm: str):
            """OpenID Connect configuration."""
            self.request_counts["configuration"] += 1
            self._check(realm)
            if self.mode == MODE_MALFORMED:
                return PlainTextResponse("<html>maintenance</html>", media_type="text/html")

            return discovery_document_factory.create_document(self.issuer)

        @self.app.get("/realms/{realm}/protocol/openid-connect/certs")
        async def jwks_endpoint(realm: str):
            """JWKS endpoint."""
            self.request_counts["certs"] += 1
            self._check(realm)
            if self.mode == MODE_NO_KEYS:
                return discovery_document_factory.create_key_set([])

            return self.jwks


def create_app():
    """Create mock discovery application."""
    server = MockDiscoveryServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8080)
