from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.common_settings import ALLOWED_ORIGINS, GOVERNANCE_DATA_DIR
from src.routers import router as api_router
from src.utils.logger import logger
from src.utils.startup_validation import validate_startup

# Run startup validation
logger.info("Governance Analytics Backend starting up...")
if not validate_startup():
    logger.error("Startup validation failed. Please check configuration.")
    # Keep serving so health checks can report the problem

app = FastAPI(title="Governance Analytics Backend", version="0.1.0")

# Parse allowed origins
allowed_origins = [origin.strip() for origin in ALLOWED_ORIGINS.split(",") if origin.strip()]
logger.info(f"Allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    # Credentials cannot be combined with a wildcard origin
    allow_credentials="*" not in allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
logger.info("✅ CORS middleware configured")


@app.get("/healthz")
def healthz() -> dict:
    """Health check with data and cache status."""
    try:
        from src.services.governance_service import get_governance_service

        health_status = {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

        service = get_governance_service()
        try:
            chains = service.list_chains()
            health_status["chains"] = len(chains)
            if not chains:
                health_status["status"] = "degraded"
                health_status["data"] = f"no chains found in {GOVERNANCE_DATA_DIR}"
            else:
                health_status["data"] = "ok"
        except Exception as e:
            health_status["data"] = f"error: {str(e)[:100]}"
            health_status["status"] = "degraded"

        health_status["cache"] = service.cache.get_cache_stats()
        return health_status

    except Exception as e:
        return {"status": "error", "error": str(e)}


# Mount API routes
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    from src.config.common_settings import HOST, PORT

    logger.info(f"Starting Governance Analytics Backend on {HOST}:{PORT}")
    uvicorn.run("src.main:app", host=HOST, port=PORT, log_level="info")
