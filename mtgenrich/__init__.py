"""
MTGEnrich, card-data enrichment for imported Magic: the Gathering collections
MIT License
"""

from .enrichment import BatchOrchestrator, EnrichmentSettings, SessionCache
from .models import BatchReport, EnrichmentStatus, ImportRecord
from .providers import ScryfallClient

__all__ = [
    "BatchOrchestrator",
    "BatchReport",
    "EnrichmentSettings",
    "EnrichmentStatus",
    "ImportRecord",
    "ScryfallClient",
    "SessionCache",
]
