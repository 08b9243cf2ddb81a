import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admissions.api import auth, students, documents, finance
from admissions.config import settings
from admissions.database import engine, Base
from admissions.exceptions import WorkflowError
from admissions.middleware.logging import setup_logging, add_logging_middleware
import admissions.models  # noqa: F401  registers all tables on Base.metadata

# Initialize FastAPI app
app = FastAPI(
    title="College Admissions API",
    description="Admission workflow engine: document verification, fee ledger and application status tracking",
    version="1.0.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup logging
setup_logging()
add_logging_middleware(app)
logger = logging.getLogger(__name__)

@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )

# Custom exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )

# Create database tables
@app.on_event("startup")
async def startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created or verified")

# Include routers
app.include_router(auth.router, prefix="/api", tags=["Authentication"])
app.include_router(students.router, prefix="/api", tags=["Students"])
app.include_router(documents.router, prefix="/api", tags=["Documents"])
app.include_router(finance.router, prefix="/api", tags=["Finance"])

@app.get("/", tags=["Root"])
async def root():
    return {"message": "College Admissions API. Visit /api/docs for documentation."}

# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("admissions.main:app", host="0.0.0.0", port=8000, reload=True)
