"""Routers package."""

from . import (
    health,
    stories,
    analytics,
    admin,
)
