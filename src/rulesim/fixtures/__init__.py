"""Project fixture loading for simulations."""

from rulesim.fixtures.loader import FixtureError, FixtureLoader, FixtureNotFoundError

__all__ = [
    "FixtureError",
    "FixtureLoader",
    "FixtureNotFoundError",
]
