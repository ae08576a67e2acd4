"""calnotes - recurring-event expansion and relevance ranking over ICS feeds.

The package merges events from several calendar feeds, expands recurring
series around the current time and ranks occurrences so that ongoing,
about-to-start and just-finished meetings surface first.
"""

__version__ = "0.1.0"

from .calendar.datetime_utils import normalize_instant
from .calendar.models import CachedEvent, CalendarSource, RawEvent
from .calendar.rrule_expander import OccurrenceExpander, expand
from .domain.pipeline import AggregationPipeline, build_relevant_list
from .domain.relevance import classify, relevance

__all__ = [
    "AggregationPipeline",
    "CachedEvent",
    "CalendarSource",
    "OccurrenceExpander",
    "RawEvent",
    "__version__",
    "build_relevant_list",
    "classify",
    "expand",
    "normalize_instant",
    "relevance",
]
