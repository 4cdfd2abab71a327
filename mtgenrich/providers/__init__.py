"""
Provider Dispatcher
"""

from .abstract import AbstractProvider
from .scryfall import ScryfallClient

__all__ = [
    "AbstractProvider",
    "ScryfallClient",
]
