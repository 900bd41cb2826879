"""Lead Score Engine: comprehensive business scoring for healthcare-marketing lead generation."""

__version__ = "1.0.0"
