"""
API module - FastAPI routers, shared dependencies and error handlers.

Usage:
    from app.api.routes import api_router
    app.include_router(api_router, prefix="/api/v1")
"""
