"""Catalogue service factory.

Provides get_catalogue() / set_catalogue() so ordering can be wired to the
real catalogue service or to MemoryCatalogue in development and tests.
"""

from catalogue.service.memory_adapter import MemoryCatalogue
from catalogue.service.port import Catalogue

_current_catalogue: Catalogue | None = None


def get_catalogue() -> Catalogue:
    """Return the current catalogue. Defaults to MemoryCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = MemoryCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: Catalogue) -> None:
    """Override the active catalogue (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    """Reset to default catalogue."""
    global _current_catalogue
    _current_catalogue = None
