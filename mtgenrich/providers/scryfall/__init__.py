"""
Scryfall card-data provider
"""

from .client import ScryfallClient

__all__ = ["ScryfallClient"]
