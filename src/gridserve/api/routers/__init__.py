"""API routers for gridserve."""
