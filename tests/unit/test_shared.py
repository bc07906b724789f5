"""
Unit tests for shared configuration, errors and logging.
"""

import pytest
import structlog
from pydantic import ValidationError

from shared.config import DiscoverySettings, ensure_discovery_path, get_settings
from shared.errors import (
    ConfigurationError,
    ErrorResponse,
    FetchError,
    MetadataUnavailable,
    NoSigningKeys,
    TransportError,
)
from shared.logging import (
    add_correlation_context,
    bind_service_name,
    clear_context,
    configure_logging,
    get_logger,
    set_request_id,
)


class TestDiscoverySettings:
    """Test cases for DiscoverySettings."""

    def test_defaults(self):
        settings = DiscoverySettings(_env_file=None, discovery_endpoint="https://idp.example")

        assert settings.discovery_endpoint == "https://idp.example/.well-known/openid-configuration"
        assert settings.refresh_interval == 1800.0
        assert settings.delay_load_metadata is False
        assert settings.serve_stale_on_error is False
        assert settings.http_timeout == 10.0
        assert settings.verify is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OIDC_DISCOVERY_ENDPOINT", "https://idp.example/realms/access/")
        monkeypatch.setenv("OIDC_REFRESH_INTERVAL", "60")
        monkeypatch.setenv("OIDC_DELAY_LOAD_METADATA", "true")

        settings = get_settings(_env_file=None)

        assert settings.discovery_endpoint == (
            "https://idp.example/realms/access/.well-known/openid-configuration"
        )
        assert settings.refresh_interval == 60.0
        assert settings.delay_load_metadata is True

    @pytest.mark.parametrize("overrides", [
        {"refresh_interval": 0},
        {"refresh_interval": -5},
        {"http_timeout": 0},
        {"discovery_endpoint": "   "},
    ])
    def test_rejects_invalid_values(self, overrides):
        values = {"discovery_endpoint": "https://idp.example"}
        values.update(overrides)
        with pytest.raises(ValidationError):
            DiscoverySettings(_env_file=None, **values)

    def test_verify_prefers_ca_bundle(self):
        settings = DiscoverySettings(
            _env_file=None, discovery_endpoint="https://idp.example", ca_bundle="/etc/ssl/idp.pem"
        )
        assert settings.verify == "/etc/ssl/idp.pem"

        settings = DiscoverySettings(
            _env_file=None, discovery_endpoint="https://idp.example",
            ca_bundle="/etc/ssl/idp.pem", verify_tls=False
        )
        assert settings.verify is False

    def test_ensure_discovery_path_keeps_full_endpoint(self):
        endpoint = "https://idp.example/.well-known/openid-configuration"
        assert ensure_discovery_path(endpoint) == endpoint


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_fetch_errors_share_base(self):
        for error in (TransportError("https://idp.example"), NoSigningKeys("https://idp.example")):
            assert isinstance(error, FetchError)
            assert error.details["endpoint"] == "https://idp.example"

    def test_unavailable_is_not_fetch_error(self):
        assert not isinstance(MetadataUnavailable("https://idp.example"), FetchError)

    def test_to_response(self):
        response = TransportError("https://idp.example", status_code=502).to_response()

        assert isinstance(response, ErrorResponse)
        assert response.code == "TRANSPORT_ERROR"
        assert response.details == {"endpoint": "https://idp.example", "status_code": 502}

    def test_configuration_error_defaults(self):
        error = ConfigurationError()
        assert error.code == "CONFIGURATION_ERROR"
        assert error.details == {}


class TestLoggingProcessors:
    """Test cases for structlog processors."""

    def teardown_method(self):
        clear_context()

    def test_correlation_context(self):
        request_id = set_request_id("req-123")
        event = add_correlation_context(None, "info", {"event": "Discovery metadata refreshed"})

        assert request_id == "req-123"
        assert event["request_id"] == "req-123"

    def test_generated_request_id(self):
        request_id = set_request_id()
        assert add_correlation_context(None, "info", {})["request_id"] == request_id

    def test_no_request_id_when_cleared(self):
        clear_context()
        assert "request_id" not in add_correlation_context(None, "info", {})

    def test_service_name_processor(self):
        processor = bind_service_name("auth")
        assert processor(None, "info", {})["service"] == "auth"

    def test_configure_logging(self):
        """Structured logging is configured for the service."""
        try:
            configure_logging("auth", log_level="debug")
            logger = get_logger("auth.discovery.cache")

            logger.debug("Discovery metadata already fresh", endpoint="https://idp.example")
            assert structlog.is_configured()
        finally:
            structlog.reset_defaults()
