"""
Service layer for the Streamtape relay.
"""
