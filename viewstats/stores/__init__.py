from .base import AggregateStore, CountryCount, DailyCount, InteractionSource, ResourceDirectory, ViewFilter, ViewStore
from .sql import SqlAggregateStore, SqlInteractionSource, SqlResourceDirectory, SqlViewStore

__all__ = [
    "AggregateStore",
    "CountryCount",
    "DailyCount",
    "InteractionSource",
    "ResourceDirectory",
    "ViewFilter",
    "ViewStore",
    "SqlAggregateStore",
    "SqlInteractionSource",
    "SqlResourceDirectory",
    "SqlViewStore",
]
