"""HTTP API for the marketplace: routers, schemas, services and wiring."""
