"""Middleware chain and continuation classes."""

from reqchain.middleware.chain import Chain, Link, Next, SyncNext, run_pipeline, run_pipeline_sync

__all__ = [
    "Chain",
    "Link",
    "Next",
    "SyncNext",
    "run_pipeline",
    "run_pipeline_sync",
]
