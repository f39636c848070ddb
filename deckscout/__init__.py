# deckscout/__init__.py
"""
DeckScout: collect a RoyaleAPI battle log and card inventory into a
deck-building report.
"""

__version__ = "0.1.0"
