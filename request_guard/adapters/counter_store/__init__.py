"""Window counter store adapters.

This package provides the storage abstraction behind the rate limiter: a
process-local store for single-instance deployments and a Redis-backed store
shared by every instance. The backend is chosen once at startup.
"""
