"""Integration tests for the SlopWatch API.

This package contains HTTP-level tests run through FastAPI's TestClient,
including:

- Vote toggling and request validation
- Batch and single status lookups
- User and global statistics
- Per-user rate limiting
- Snapshot persistence across restarts

No external services are required; each test gets its own snapshot file.
"""
