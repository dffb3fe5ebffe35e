"""Unit tests for the vote store, rate limiter, persistence and client."""
