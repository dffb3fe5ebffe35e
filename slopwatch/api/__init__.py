"""HTTP API, vote store, rate limiter and persistence for SlopWatch."""
