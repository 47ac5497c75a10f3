"""Building blocks for RPC interceptors: contexts, metadata, status codes, validation, metrics and backoff."""

__version__ = "0.1.0"