"""TutorClub billing backend entrypoint."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutorclub.app.api import discounts, enrollments, invoices, ledger, login, payments, payroll, settlements, tuition
from tutorclub.app.core.dev_seed import ensure_default_dev_admin
from tutorclub.app.core.errors import BillingError
from tutorclub.app.core.logging_config import configure_logging
from tutorclub.app.core.settings import get_settings
from tutorclub.app.db.base import Base
from tutorclub.app.db.session import SessionLocal, engine

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()
app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(login.router)
app.include_router(tuition.router)
app.include_router(invoices.router)
app.include_router(payments.router)
app.include_router(settlements.router)
app.include_router(payroll.router)
app.include_router(discounts.router)
app.include_router(ledger.router)
app.include_router(enrollments.router)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def prepare_database():
    if settings.environment != "development":
        return
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_dev_admin(db)
    finally:
        db.close()
