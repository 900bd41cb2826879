"""Upstream integrations: the DataForSEO API client and the homepage fetcher."""
