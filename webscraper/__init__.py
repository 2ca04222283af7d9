"""Policy-driven site crawler with background job tracking."""

__version__ = "0.3.0"
