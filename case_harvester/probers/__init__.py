# case_harvester/probers/__init__.py
"""
Probers Package
Headless browser page fetching
"""

from .page_fetch import PageFetcher

__all__ = [
    "PageFetcher",
]
