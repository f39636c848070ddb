# deckscout/scraper/errors.py


class ScraperBlockedError(Exception):
    """Raised when Cloudflare blocks scraper access."""


class PlayerNotFoundError(Exception):
    """Raised when the player tag does not exist on the site."""


class ReportDeliveryError(Exception):
    """Raised when the report sink cannot take the final report."""
