"""Event-driven image upload pipeline on AWS."""

__version__ = "0.1.0"
