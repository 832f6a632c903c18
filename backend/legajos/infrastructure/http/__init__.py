"""
HTTP Infrastructure

Fetch capability for the case API.
"""

from .fetcher import FetchJson, HttpxFetcher, LegajoEndpoints, raise_for_status

__all__ = ["FetchJson", "HttpxFetcher", "LegajoEndpoints", "raise_for_status"]
