from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from invoice_intake.routers import invoices, vendors
from invoice_intake.config import settings
from invoice_intake.exceptions import ValidationError, UnsupportedMediaType, PayloadTooLarge
from invoice_intake.services.storage_service import storage_service, media_type_for
import logging
import os
import sys

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

logger.info("Starting Invoice Intake API")
logger.info(f"Extraction provider: {settings.extraction_provider}")
logger.info(f"S3 storage configured: {bool(settings.storage_access_key_id and settings.storage_secret_access_key)}")

# Tables are managed by Alembic migrations (alembic upgrade head)

app = FastAPI(
    title="Invoice Intake API",
    description="Upload, extract and book vendor invoices",
    version="1.0.0"
)


def parse_cors_origins(origins_str: str) -> list:
    """Parse CORS origins string into a list"""
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_cors_origins(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(invoices.router)
app.include_router(vendors.router)


@app.get("/")
def root():
    return {"message": "Invoice Intake API", "version": "1.0.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/api/storage/{file_path:path}")
def serve_storage_file(file_path: str):
    """
    Serve a stored invoice file

    Args:
        file_path: Storage key (e.g., "invoices/1718000000000000_acme_march.pdf")
    """
    try:
        file_content = storage_service.download_file(file_path)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")

    return Response(
        content=file_content,
        media_type=media_type_for(file_path),
        headers={
            "Content-Disposition": f'inline; filename="{os.path.basename(file_path)}"'
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    if isinstance(exc, UnsupportedMediaType):
        status_code = 415
    elif isinstance(exc, PayloadTooLarge):
        status_code = 413
    else:
        status_code = 400
    logger.warning(f"Rejected {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {str(exc)}"}
    )
