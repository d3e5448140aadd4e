"""Remote job search: multi-source aggregation, filtering and match scoring."""

__version__ = "0.3.0"
