"""Trademark registry crawl lifecycle: navigations, request keys and sinks."""

__version__ = "0.1.0"
