"""Batching and concurrency defaults for reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import positive_int_env

DEFAULT_BATCH_SIZE = 250
DEFAULT_READ_CHUNK_SIZE = 500
DEFAULT_WRITE_CONCURRENCY = 1
DEFAULT_COMPUTE_WORKERS = 1


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    write_concurrency: int = DEFAULT_WRITE_CONCURRENCY
    compute_workers: int = DEFAULT_COMPUTE_WORKERS


def get_reconcile_config() -> ReconcileConfig:
    return ReconcileConfig(
        batch_size=positive_int_env("STOCKRECON_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        read_chunk_size=positive_int_env("STOCKRECON_READ_CHUNK_SIZE", DEFAULT_READ_CHUNK_SIZE),
        write_concurrency=positive_int_env(
            "STOCKRECON_WRITE_CONCURRENCY", DEFAULT_WRITE_CONCURRENCY
        ),
        compute_workers=positive_int_env("STOCKRECON_COMPUTE_WORKERS", DEFAULT_COMPUTE_WORKERS),
    )
