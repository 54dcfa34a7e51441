"""Crawl websites and convert their pages to Markdown."""

__version__ = "0.1.0"
