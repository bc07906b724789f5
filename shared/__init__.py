"""
Shared utilities for OIDC discovery metadata caching.

This package aggregates common building blocks consumed by the discovery
cache and its tests:

- config: Discovery settings via pydantic-settings
- logging: Structured logging with request correlation
- errors: Canonical error types and responses
- test_helpers: Key material and discovery document factories

Do not import from service_* packages into shared/.
"""
