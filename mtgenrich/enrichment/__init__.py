"""
Card-data enrichment pipeline
"""

from .cache import LookupCache, SessionCache
from .clock import Clock, SystemClock
from .merger import apply_result, merge_card_data
from .normalizer import build_cache_key, plan_lookups
from .orchestrator import BatchOrchestrator, EnrichmentBatch
from .retry import FailureKind, RetryController, RetryPolicy, classify_failure
from .scheduler import QueueEntry, RateLimiter, RequestScheduler
from .settings import EnrichmentSettings

__all__ = [
    "BatchOrchestrator",
    "Clock",
    "EnrichmentBatch",
    "EnrichmentSettings",
    "FailureKind",
    "LookupCache",
    "QueueEntry",
    "RateLimiter",
    "RequestScheduler",
    "RetryController",
    "RetryPolicy",
    "SessionCache",
    "SystemClock",
    "apply_result",
    "build_cache_key",
    "classify_failure",
    "merge_card_data",
    "plan_lookups",
]
