"""Feed aggregator that merges recent entries of many feeds."""

__version__ = "0.1.0"
