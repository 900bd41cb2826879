"""Domain modules: scoring, location resolution and website signals."""
