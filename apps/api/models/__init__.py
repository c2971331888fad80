"""Models package."""

from .story import Story
from .analytics_event import AnalyticsEvent
