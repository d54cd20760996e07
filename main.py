import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from db import SessionDep, create_db_and_tables
from errors import AppError, Internal
from routers import assets, auth, borrow, reports

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="BorrowDesk")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
def on_startup() -> None:
    create_db_and_tables()


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = "Invalid request body"
    if fields:
        message = f"Invalid value for: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(SQLAlchemyError)
def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Store failure on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": Internal().message})


@app.get("/health")
def health(session: SessionDep):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        session.exec(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database connection error")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "database": "connection failed",
                "timestamp": timestamp,
            },
        )
    return {"status": "ok", "database": "connected", "timestamp": timestamp}


app.include_router(auth.router)
app.include_router(assets.router, prefix="/api")
app.include_router(borrow.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
