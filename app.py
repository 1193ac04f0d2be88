#===============================================================================
# PRESSDESK - MAIN APPLICATION FILE (app.py)
# Multi-tenant WordPress publishing dashboard API
#
# This FastAPI application wires together:
# - Site registry & admin verification
# - Creator authentication to WordPress sites
# - Article drafts and publishing (featured images, tags)
# - Published-post reconciliation
# - Health endpoints
#===============================================================================

#-- Section 1: Core Imports
import logging

from fastapi import FastAPI

from config.settings import get_settings
from pressdesk.integrations.wordpress import check_module_health, get_integration_info
from pressdesk.publishing import PublishingRuntime, register_with_app

logger = logging.getLogger(__name__)

#-- Section 2: Application Setup
app = FastAPI(
    title="PressDesk",
    description="Write articles once, publish them to any connected WordPress site",
    version="1.0.0"
)

register_with_app(app)


#-- Section 3: Application Lifecycle Events
@app.on_event("startup")
async def startup_event():
    """Open the database pool and WordPress HTTP session."""
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = PublishingRuntime(get_settings())
    await app.state.runtime.init()
    logger.info("🚀 PressDesk started")


@app.on_event("shutdown")
async def shutdown_event():
    runtime = getattr(app.state, "runtime", None)
    if runtime is not None:
        await runtime.shutdown()
    logger.info("👋 PressDesk stopped")


#-- Section 4: Health Endpoints
@app.get("/health")
async def health_check():
    """System health check endpoint"""
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        return {"status": "unhealthy", "services": {}, "error": "runtime not started"}
    return await runtime.health()


@app.get("/api/health/wordpress")
async def wordpress_health():
    """WordPress integration health check"""
    return {
        "integration": get_integration_info(),
        "health": check_module_health(),
    }


#-- Section 5: Development Server
if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    print("🚀 Starting PressDesk Development Server...")
    print(f"   Server: http://localhost:{settings.port}")
    print(f"   API Docs: http://localhost:{settings.port}/docs")
    print(f"   Health: http://localhost:{settings.port}/health")
    print()

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=True,
        reload=False
    )
