"""StrollerScout upstream access layer.

Resilient HTTP access to third-party services (geocoding, neighborhood
safety, travel advisories) with retries, failure classification and
in-memory caching.
"""

__version__ = "0.1.0"
