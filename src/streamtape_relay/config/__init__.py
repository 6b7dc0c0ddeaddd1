"""
Configuration management for the Streamtape relay.

Contains the Pydantic settings object and its cached accessor.
"""
