from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api.routes.import_routes import router as import_router
from api.routes.field_routes import router as field_router
from api.routes.contact_routes import router as contact_router
from api.routes.user_routes import router as user_router
from config import settings
from core.fields.field_service import FieldService
from db.mongodb.connection import mongodb_connection
from db.repository_factory import get_field_repository
from utils.logger import logger
import uvicorn


# Create FastAPI app
app = FastAPI(
    title="Contact Import API",
    description="Import contacts from CSV and Excel files with field detection and duplicate merging",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Contact Import API...")
    await mongodb_connection.connect()
    await mongodb_connection.ensure_indexes()

    field_service = FieldService(await get_field_repository())
    await field_service.initialize_core_fields()
    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Contact Import API...")
    await mongodb_connection.disconnect()
    logger.info("Application shutdown complete")


# Include routers
app.include_router(import_router, tags=["Imports"])
app.include_router(field_router, tags=["Fields"])
app.include_router(contact_router, tags=["Contacts"])
app.include_router(user_router, tags=["Users"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Contact Import API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
