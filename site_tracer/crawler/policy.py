# site_tracer/crawler/policy.py
"""Admission and depth rules of a crawl run."""
from __future__ import annotations

import logging
from urllib.parse import urlsplit

from site_tracer.config import CrawlConfig
from site_tracer.crawler.models import FrontierItem
from site_tracer.crawler.urls import is_data_url

__all__ = ("CrawlPolicy",)

logger = logging.getLogger("SiteTracer.policy")


class CrawlPolicy:
    """Decides which frontier items may be claimed and how deep children go."""

    def __init__(self, config: CrawlConfig) -> None:
        self.max_depth = config.max_depth
        self.skip_data_images = config.skip_data_images
        self.exclude_patterns = tuple(config.exclude_patterns)

    def is_excluded(self, url: str) -> bool:
        """True when the URL path (query ignored) starts with an excluded prefix."""
        if not self.exclude_patterns:
            return False
        try:
            path = urlsplit(url).path
        except ValueError as exc:
            logger.debug("Cannot check exclusion for %s: %s", url, exc)
            return False
        return path.startswith(self.exclude_patterns)

    def is_refused(self, url: str) -> bool:
        """True for URLs that are never recorded, whatever their depth."""
        if self.skip_data_images and is_data_url(url):
            return True
        return self.is_excluded(url)

    def should_crawl(self, item: FrontierItem) -> bool:
        if item.depth > self.max_depth:
            return False
        return not self.is_refused(item.url)

    def child_depth(self, parent_depth: int, inbound: bool) -> int:
        """Inbound children go one level deeper; outbound ones are pinned to the limit."""
        return parent_depth + 1 if inbound else self.max_depth
