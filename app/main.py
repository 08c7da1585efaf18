from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from app.database.database import engine, Base, SessionLocal

# Import middleware
from app.common.middleware import TenantMiddleware, SecurityHeadersMiddleware

# Import routers
from app.modules.scenarios.router import scenarios_router
from app.modules.scenarios.exceptions import ScenarioError
from app.modules.scenarios.seed_data import populate_scenario_mappings

# Import models for table creation
import app.modules.scenarios.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ARRAY_INPUT_PATHS = ("/api/scenarios/lookup", "/api/scenarios/validate")
MSG_ARRAYS_REQUIRED = "Business activities and sectors must be provided as arrays"

# FastAPI app
app = FastAPI(
    title="FBR Scenarios API",
    description="FBR scenario resolver for the multi-tenant invoicing backend, built with FastAPI and PostgreSQL",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(scenarios_router, prefix="/api")


@app.exception_handler(ScenarioError)
async def scenario_error_handler(request: Request, exc: ScenarioError):
    """Errores del resolver con el formato {success, message}."""
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Entradas que no son arreglos en lookup y validate se responden con 400."""
    if request.url.path in ARRAY_INPUT_PATHS:
        logger.info(f"Rejected malformed scenario request on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": MSG_ARRAYS_REQUIRED}
        )
    return await request_validation_exception_handler(request, exc)


@app.get("/")
async def read_root():
    return {
        "message": "FBR Scenarios API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("FBR Scenarios API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Scenario store fallback: {settings.SCENARIO_STORE_FALLBACK}")

    # Create tables and seed mappings (use migrations in production)
    if settings.ENVIRONMENT != "production" and settings.SEED_SCENARIOS_ON_STARTUP:
        try:
            Base.metadata.create_all(bind=engine)
            db = SessionLocal()
            try:
                populate_scenario_mappings(db)
            finally:
                db.close()
        except Exception as e:
            logger.warning(f"Scenario table setup skipped or failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FBR Scenarios API shutting down...")
