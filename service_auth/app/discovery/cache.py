"""
Cached OpenID Connect issuer metadata for offline token validation.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple, Union

from shared.config import DiscoverySettings
from shared.errors import ConfigurationError, FetchError, MetadataUnavailable, NoSigningKeys
from shared.logging import get_logger

from .fetcher import CertificateValidator, HttpMetadataFetcher, MetadataFetcher
from .snapshot import Snapshot

DEFAULT_REFRESH_INTERVAL = 1800.0


class _CacheEntry(NamedTuple):
    """Installed snapshot and the time its fetch started; replaced as one object."""

    snapshot: Snapshot
    fetched_at: float


class MetadataCache:
    """Issuer, audience and signing keys of one discovery endpoint.

    The installed ``(snapshot, fetched_at)`` pair is a single immutable entry,
    so readers see a consistent pair without locking. Refreshes are serialized
    by ``_refresh_lock`` and double-checked, so callers that queue up behind an
    in-flight fetch reuse its result instead of fetching again.

    A failed refresh never clears or replaces the installed snapshot.
    """

    def __init__(
        self,
        discovery_endpoint: str,
        fetcher: MetadataFetcher,
        *,
        refresh_interval: Union[float, timedelta] = DEFAULT_REFRESH_INTERVAL,
        delay_load_metadata: bool = False,
        serve_stale_on_error: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not discovery_endpoint:
            raise ConfigurationError("Discovery endpoint must not be empty")
        if isinstance(refresh_interval, timedelta):
            refresh_interval = refresh_interval.total_seconds()
        if refresh_interval <= 0:
            raise ConfigurationError(
                "Refresh interval must be positive",
                details={"refresh_interval": refresh_interval}
            )

        self.discovery_endpoint = discovery_endpoint
        self.refresh_interval = float(refresh_interval)
        self.serve_stale_on_error = serve_stale_on_error
        self.logger = get_logger("auth.discovery.cache")

        self._fetcher = fetcher
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._entry: Optional[_CacheEntry] = None
        self._generation = 0

        self._refresh_count = 0
        self._failure_count = 0
        self._last_error: Optional[str] = None

        if not delay_load_metadata:
            self.refresh()

    @classmethod
    def from_settings(
        cls,
        settings: DiscoverySettings,
        fetcher: Optional[MetadataFetcher] = None,
        *,
        certificate_validator: Optional[CertificateValidator] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "MetadataCache":
        """Build a cache, and an HTTP fetcher unless one is given, from settings."""
        if fetcher is not None and certificate_validator is not None:
            raise ConfigurationError(
                "A certificate validator cannot be applied to a caller-supplied fetcher"
            )
        if fetcher is None:
            fetcher = HttpMetadataFetcher(
                timeout=settings.http_timeout,
                verify=settings.verify,
                certificate_validator=certificate_validator,
            )
        return cls(
            settings.discovery_endpoint,
            fetcher,
            refresh_interval=settings.refresh_interval,
            delay_load_metadata=settings.delay_load_metadata,
            serve_stale_on_error=settings.serve_stale_on_error,
            clock=clock,
        )

    # Accessors

    def get_issuer(self) -> str:
        """Return the issuer, refreshing stale metadata first."""
        return self._ensure_fresh().issuer

    def get_audience(self) -> str:
        """Return the default resource audience, ``<issuer>/resources``."""
        return self._ensure_fresh().audience

    def get_signing_keys(self) -> Tuple[Any, ...]:
        """Return the signing keys in document order."""
        return self._ensure_fresh().signing_keys

    @property
    def issuer(self) -> str:
        return self.get_issuer()

    @property
    def audience(self) -> str:
        return self.get_audience()

    @property
    def signing_keys(self) -> Tuple[Any, ...]:
        return self.get_signing_keys()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The installed snapshot, stale or not; never triggers a refresh."""
        entry = self._entry
        return entry.snapshot if entry is not None else None

    # Refresh

    def is_stale(self) -> bool:
        return self._is_stale(self._entry)

    def _is_stale(self, entry: Optional[_CacheEntry]) -> bool:
        if entry is None:
            return True
        return (self._clock() - entry.fetched_at) >= self.refresh_interval

    def _ensure_fresh(self) -> Snapshot:
        entry = self._entry
        if not self._is_stale(entry):
            return entry.snapshot

        try:
            return self.refresh()
        except FetchError as exc:
            entry = self._entry
            if entry is None:
                raise MetadataUnavailable(self.discovery_endpoint) from exc
            if not self.serve_stale_on_error:
                raise
            self.logger.warning(
                "Serving stale discovery metadata after failed refresh",
                endpoint=self.discovery_endpoint,
                age_seconds=round(self._clock() - entry.fetched_at, 3)
            )
            return entry.snapshot
        except Exception as exc:
            if self._entry is None:
                raise MetadataUnavailable(self.discovery_endpoint) from exc
            raise

    def refresh(self, force: bool = False) -> Snapshot:
        """Fetch and install metadata if stale, or unconditionally when forced.

        Only one fetch runs at a time. A caller that waited for the lock skips
        its own fetch when the metadata it waited on was installed meanwhile.

        Raises:
            FetchError: the fetch failed; the installed snapshot is unchanged
        """
        observed_generation = self._generation
        with self._refresh_lock:
            entry = self._entry
            if entry is not None:
                if force and self._generation != observed_generation:
                    self.logger.debug(
                        "Discovery metadata refreshed by concurrent caller",
                        endpoint=self.discovery_endpoint
                    )
                    return entry.snapshot
                if not force and not self._is_stale(entry):
                    self.logger.debug(
                        "Discovery metadata already fresh",
                        endpoint=self.discovery_endpoint
                    )
                    return entry.snapshot
            return self._fetch_and_install()

    def _fetch_and_install(self) -> Snapshot:
        # caller holds _refresh_lock
        started_at = self._clock()
        try:
            snapshot = self._fetcher.fetch(self.discovery_endpoint)
            if snapshot is None or not snapshot.signing_keys:
                raise NoSigningKeys(self.discovery_endpoint)
        except FetchError as exc:
            self._failure_count += 1
            self._last_error = str(exc)
            self.logger.error(
                "Error contacting discovery endpoint",
                endpoint=self.discovery_endpoint,
                code=exc.code,
                error=exc.message,
                has_snapshot=self._entry is not None
            )
            raise
        except Exception as exc:
            self._failure_count += 1
            self._last_error = str(exc)
            self.logger.exception(
                "Unexpected error fetching discovery metadata",
                endpoint=self.discovery_endpoint
            )
            raise

        self._entry = _CacheEntry(snapshot=snapshot, fetched_at=started_at)
        self._generation += 1
        self._refresh_count += 1
        self._last_error = None

        self.logger.info(
            "Discovery metadata refreshed",
            endpoint=self.discovery_endpoint,
            issuer=snapshot.issuer,
            keys_count=len(snapshot.signing_keys)
        )
        return snapshot

    # Introspection

    def get_state(self) -> Dict[str, Any]:
        """Get current cache state."""
        entry = self._entry
        return {
            "endpoint": self.discovery_endpoint,
            "populated": entry is not None,
            "stale": self._is_stale(entry),
            "issuer": entry.snapshot.issuer if entry else None,
            "keys_count": len(entry.snapshot.signing_keys) if entry else 0,
            "seconds_since_refresh": (self._clock() - entry.fetched_at) if entry else None,
            "refresh_interval": self.refresh_interval,
            "refresh_count": self._refresh_count,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
        }

    def close(self) -> None:
        """Release the fetcher's transport, if it holds one."""
        close = getattr(self._fetcher, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "MetadataCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
