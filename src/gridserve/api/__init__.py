"""HTTP surface for gridserve."""
