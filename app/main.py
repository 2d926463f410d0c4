# app/main.py
import time
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import Base, engine
from app.logging_config import setup_logging
from app.routers import teachers, workshops, workshop_pictures, users


setup_logging()
logger = logging.getLogger("app")


# Create tables if missing
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Event Workshops Backend", version="1.0.0")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        # traceback is logged once, by global_exception_handler
        ms = int((time.time() - start) * 1000)
        logger.error("%s %s -> 500 (%dms)", request.method, request.url.path, ms)
        raise


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": errors})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(teachers.router, prefix=settings.API_PREFIX)
app.include_router(workshop_pictures.router, prefix=settings.API_PREFIX)
app.include_router(workshops.router, prefix=settings.API_PREFIX)
app.include_router(users.router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    return {"message": "Workshops backend is running!"}


@app.get("/health")
def health():
    return {"status": "healthy"}
