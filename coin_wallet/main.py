# main.py
from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Env must be loaded before the modules below read it at import time.
ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=ENV_FILE, override=True)

from fastapi import FastAPI, Depends, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from . import admin, app_settings, orders, users, withdrawals
from .auth import get_session_holder, write_session_cookie
from .db import SessionLocal, engine, get_db, init_db
from .errors import register_error_handlers
from .schemas import LoginIn, SessionOut, SignupIn, SignupOut
from .session import SessionHolder

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Coin Wallet API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    openapi_url="/openapi.json",
)
register_error_handlers(app)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

origins = {"http://localhost:5173", "http://localhost:8080", "http://localhost:3000"}
frontend_env = os.getenv("FRONTEND_ORIGIN")
if frontend_env and frontend_env != "*":
    origins.add(frontend_env)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# DB bootstrap
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup() -> None:
    init_db()
    log.info("tables ready on %s", engine.url.render_as_string(hide_password=True))
    db = SessionLocal()
    try:
        users.bootstrap_admin(db)
    finally:
        db.close()

# ---------------------------------------------------------------------------
# Root, health
# ---------------------------------------------------------------------------

@app.get("/", include_in_schema=False)
def index():
    return RedirectResponse(url="/docs")

@app.get("/healthz", include_in_schema=False)
def healthz():
    return {"ok": True}

# ---------------------------------------------------------------------------
# Auth / session
# ---------------------------------------------------------------------------

@app.post("/signup", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn, resp: Response, db: Session = Depends(get_db)):
    holder = SessionHolder()
    session, notices = users.signup(
        db, holder, payload.name, payload.phone, payload.password, payload.referral_code
    )
    write_session_cookie(resp, holder)
    return SignupOut(session=SessionOut(**session.model_dump()), notices=notices)

@app.post("/login", response_model=SessionOut)
def login(payload: LoginIn, resp: Response, db: Session = Depends(get_db)):
    holder = SessionHolder()
    session = users.login(db, holder, payload.phone, payload.password)
    write_session_cookie(resp, holder)
    return session.model_dump()

@app.post("/logout", status_code=status.HTTP_200_OK)
def logout(resp: Response):
    holder = SessionHolder()
    users.logout(holder)
    write_session_cookie(resp, holder)
    return {"ok": True}

@app.get("/session", response_model=SessionOut)
def session_refresh(
    resp: Response,
    holder: SessionHolder = Depends(get_session_holder),
    db: Session = Depends(get_db),
):
    """Current identity with the balance re-read from the database."""
    holder.refresh(db)
    if holder.changed:
        write_session_cookie(resp, holder)
    return holder.current.model_dump()

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(users.router)
app.include_router(orders.router)
app.include_router(withdrawals.router)
app.include_router(app_settings.router)
app.include_router(admin.router)
