"""DueCycle - periodic obligation tracking for bills and budget buckets."""

__version__ = "0.1.0"
