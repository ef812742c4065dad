from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from app.api.v1 import files, folder, items, trash
from app.api.v1.ws import files_ws
from app.core.config import settings
from app.core.database import engine, Base
from app.core.exceptions import FileTreeError
from app.services.retention import RetentionSweeper
import logging
import time
from fastapi.middleware.cors import CORSMiddleware


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Student Files API", version="1.0.0")

# Include routers
app.include_router(folder.router, prefix="/api/v1/folders", tags=["folders"])
app.include_router(items.router, prefix="/api/v1/items", tags=["items"])
app.include_router(files.router, prefix="/api/v1/files", tags=["files"])
app.include_router(trash.router, prefix="/api/v1/trash", tags=["trash"])
app.include_router(files_ws.router, prefix="/api/v1", tags=["change feed websocket"])

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_url or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sweeper = None


@app.exception_handler(FileTreeError)
async def file_tree_error_handler(request: Request, exc: FileTreeError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
async def startup_event():
    global sweeper
    # Wait for database to be ready and create tables
    max_retries = 30
    retry_count = 0

    while retry_count < max_retries:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
            break
        except Exception as e:
            retry_count += 1
            logger.warning(
                f"Database connection attempt {retry_count} failed: {str(e)}"
            )
            if retry_count >= max_retries:
                logger.error("Max retries reached. Could not connect to database.")
                raise e
            time.sleep(2)

    if settings.retention_sweep_enabled:
        sweeper = RetentionSweeper()
        sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    if sweeper is not None:
        sweeper.shutdown()


@app.get("/")
def read_root():
    return {"message": "Student Files API", "version": "1.0.0"}


@app.get("/health")
def health_check():
    try:
        # Check database connection
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Database unhealthy: {str(e)}")
