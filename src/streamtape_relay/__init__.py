"""Streamtape relay: a small REST API in front of the Streamtape file hosting API."""

__version__ = "1.0.0"
