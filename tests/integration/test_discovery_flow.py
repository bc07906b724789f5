"""
Integration tests for the discovery metadata flow against the mock server.
"""

import pytest
from fastapi.testclient import TestClient

from mocks.discovery.server import (
    MODE_MALFORMED,
    MODE_NO_KEYS,
    MODE_OK,
    MODE_OUTAGE,
    MockDiscoveryServer,
)
from service_auth.app.discovery import HttpMetadataFetcher, MetadataCache
from shared.config import DiscoverySettings
from shared.errors import MalformedDocument, MetadataUnavailable, NoSigningKeys, TransportError


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestDiscoveryFlow:
    """Integration tests for the complete discovery flow."""

    @pytest.fixture
    def server(self):
        return MockDiscoveryServer()

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def cache(self, server, clock):
        settings = DiscoverySettings(
            _env_file=None,
            discovery_endpoint=f"{server.issuer}/",
            refresh_interval=300,
        )
        fetcher = HttpMetadataFetcher(TestClient(server.app))
        with MetadataCache.from_settings(settings, fetcher, clock=clock) as cache:
            yield cache

    def test_eager_population(self, server, cache):
        """The cache is populated from the server at construction."""
        assert server.request_counts == {"configuration": 1, "certs": 1}
        assert cache.discovery_endpoint == server.discovery_endpoint

        assert cache.get_issuer() == server.issuer
        assert cache.get_audience() == f"{server.issuer}/resources"
        assert [key.key_id for key in cache.get_signing_keys()] == ["mock-key-1"]
        assert server.request_counts == {"configuration": 1, "certs": 1}

    def test_key_rotation_picked_up_after_interval(self, server, cache, clock):
        """Rotated keys appear once the refresh interval elapses."""
        server.rotate_keys("mock-key-2")

        clock.now = 299
        assert [key.key_id for key in cache.get_signing_keys()] == ["mock-key-1"]

        clock.now = 300
        assert [key.key_id for key in cache.get_signing_keys()] == ["mock-key-2", "mock-key-1"]
        assert server.request_counts["configuration"] == 2

    @pytest.mark.parametrize("mode,error", [
        (MODE_OUTAGE, TransportError),
        (MODE_MALFORMED, MalformedDocument),
        (MODE_NO_KEYS, NoSigningKeys),
    ])
    def test_outage_preserves_metadata(self, server, cache, clock, mode, error):
        """Failures reach the triggering caller without losing the cached metadata."""
        good = cache.snapshot
        server.mode = mode
        clock.now = 600

        with pytest.raises(error):
            cache.get_signing_keys()
        assert cache.snapshot is good

        server.mode = MODE_OK
        assert cache.get_issuer() == server.issuer
        assert cache.snapshot is not good
        assert cache.get_state()["failure_count"] == 1

    def test_cold_start_outage(self, server, clock):
        """A lazily loaded cache reports unavailability until the server recovers."""
        server.mode = MODE_OUTAGE
        cache = MetadataCache(
            server.discovery_endpoint,
            HttpMetadataFetcher(TestClient(server.app)),
            delay_load_metadata=True,
            clock=clock,
        )

        with pytest.raises(MetadataUnavailable):
            cache.get_issuer()
        with pytest.raises(MetadataUnavailable):
            cache.get_audience()

        server.mode = MODE_OK
        assert cache.get_issuer() == server.issuer
        assert server.request_counts["configuration"] == 3
