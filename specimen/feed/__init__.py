"""Feeds: external rows bound to generated instances."""

from .binder import FeedBinder, FeedBinding
from .feed import Feed, FeedSpec, column, function, template
from .source import DataSource

__all__ = [
    "DataSource",
    "Feed",
    "FeedBinder",
    "FeedBinding",
    "FeedSpec",
    "column",
    "function",
    "template",
]
