"""End-to-end scenarios for the deduplication middleware.

Each module drives a FastAPI application through TestClient and checks one
aspect of the protocol: replay, contention, failure handling, TTL recovery,
request matching, and the demo service.
"""
