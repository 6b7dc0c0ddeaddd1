"""
Adapter layer for the Streamtape relay.

Contains the client for the Streamtape HTTP API.
"""
