"""Dashboard stats — periodic recomputation, Redis cache, broadcast."""
