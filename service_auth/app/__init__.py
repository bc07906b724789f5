"""
Auth Service package for OIDC discovery metadata.

This package provides what a bearer token validation layer needs from the
authorization server, without validating tokens itself:

- app.discovery: Cached issuer, audience and signing keys fetched from the
  OpenID Connect discovery endpoint.

Design notes:
- Keep the package import side-effects minimal; module import must not
  perform network calls. IO happens when a cache is constructed eagerly or
  when an accessor finds the metadata stale.
- Use the shared/ utilities for logging, configuration and errors.
"""
