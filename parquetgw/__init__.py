"""Query layer over day-aligned, sharded time series blocks, with discovery and quotas."""

__version__ = "0.1.0"