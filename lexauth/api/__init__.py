"""HTTP layer: access guard and versioned routers."""
