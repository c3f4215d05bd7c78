"""
Notion listings source.

Fetches listings and their amenities, nearby locations and virtual tour
scenes from Notion databases, mirrors every referenced image to local
storage and caches results for the lifetime of a build.
"""

__all__ = ["client", "context", "extractors", "images", "children", "transform", "fetch", "export"]
