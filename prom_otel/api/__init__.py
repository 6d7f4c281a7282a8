"""HTTP surface: FastAPI app, lifespan and routes."""
