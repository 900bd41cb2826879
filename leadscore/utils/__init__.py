"""Shared utilities: domain helpers, validators, and the upstream rate limiter."""
