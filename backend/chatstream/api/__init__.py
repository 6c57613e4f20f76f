"""API Layer — FastAPI routers, dependencies, and global error handlers."""
