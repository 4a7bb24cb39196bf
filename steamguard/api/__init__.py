"""
Steam API client layer.

Provides blocking HTTP communication with the Steam Web API and
steamcommunity.com.
"""

from steamguard.api.http_client import HttpClient, sanitize_for_log

__all__ = ["HttpClient", "sanitize_for_log"]
