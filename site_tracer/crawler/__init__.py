"""site_tracer.crawler: URL handling, fetching, scheduling and the crawl session."""
