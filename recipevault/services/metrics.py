"""
Prometheus metrics for repository calls, the client cache, optimistic
rollbacks, and legacy migration.
Exposed via /metrics endpoint for Prometheus scraping.
"""

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

repository_calls_total = Counter(
    "recipevault_repository_calls_total",
    "Remote repository calls by operation and status",
    ["operation", "status"],  # success/failure
)
repository_duration_seconds = Histogram(
    "recipevault_repository_duration_seconds",
    "Remote repository call duration in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0),
)

cache_hits_total = Counter(
    "recipevault_cache_hits_total",
    "Client cache hits",
    ["key"],  # list, entity
)
cache_misses_total = Counter(
    "recipevault_cache_misses_total",
    "Client cache misses (remote fetch required)",
    ["key"],
)

optimistic_rollbacks_total = Counter(
    "recipevault_optimistic_rollbacks_total",
    "Optimistic cache updates reverted after a remote failure",
    ["operation"],  # reorder, favourite
)

migrations_total = Counter(
    "recipevault_migrations_total",
    "Legacy migration runs by outcome",
    ["outcome"],  # migrated, empty, skipped, failed, capped
)


def _key_label(key: tuple) -> str:
    return "list" if len(key) == 1 else "entity"


def record_cache_hit(key: tuple) -> None:
    cache_hits_total.labels(key=_key_label(key)).inc()


def record_cache_miss(key: tuple) -> None:
    cache_misses_total.labels(key=_key_label(key)).inc()


def record_repository_call(operation: str, success: bool) -> None:
    status = "success" if success else "failure"
    repository_calls_total.labels(operation=operation, status=status).inc()


def record_rollback(operation: str) -> None:
    optimistic_rollbacks_total.labels(operation=operation).inc()


def record_migration(outcome: str) -> None:
    migrations_total.labels(outcome=outcome).inc()


@contextmanager
def timed_repository_call(operation: str) -> Iterator[None]:
    """Time a remote call and record it under `operation`."""
    start = time.perf_counter()
    try:
        yield
    finally:
        repository_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - start
        )
