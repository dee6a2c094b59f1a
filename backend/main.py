"""
FastAPI application for MonkeyBets
Includes REST API, change stream, and scheduled housekeeping
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request, Security, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional
import logging
import os

from backend.models import get_db, Monkey, SessionLocal
from backend.auth import SESSION_HEADER, get_current_monkey, get_optional_monkey
from backend.services.exceptions import AccountNotFound, MonkeyBetsError, PhoneAlreadyRegistered
from backend.services.identity import (
    close_session,
    find_by_phone,
    open_session,
    purge_expired_sessions,
    sign_in,
    sign_up,
)
from backend.services.phone_verification import PhoneVerifier, get_phone_verifier
from backend.services.props import (
    build_dashboard,
    build_prop_detail,
    build_public_prop,
    build_wager_detail,
    create_prop,
    list_created_props,
    list_props_by_owner,
    place_wager,
    prop_to_dict,
    set_result,
    soft_delete_prop,
    wager_to_dict,
)
from backend.services.realtime import WATCHED_TABLES, change_feed, change_stream
from backend.schemas import (
    AuthResponse,
    DashboardResponse,
    MonkeyResponse,
    PropCreate,
    PropDetailResponse,
    PropResponse,
    PublicPropResponse,
    ResultUpdate,
    SendCodeRequest,
    VerifyCodeRequest,
    WagerCreate,
    WagerDetailResponse,
    WagerResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("🍌 Starting MonkeyBets")

    purge_minutes = int(os.getenv("SESSION_PURGE_INTERVAL_MIN", "60"))
    scheduler.add_job(
        _purge_sessions_job,
        IntervalTrigger(minutes=purge_minutes),
        id="purge_sessions",
        name="Purge Expired Sessions",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started: session purge every %dmin", purge_minutes)

    yield

    logger.info("👋 Shutting down MonkeyBets")
    scheduler.shutdown()


app = FastAPI(
    title="MonkeyBets",
    description="Social prop betting with bananas",
    version="1.0",
    lifespan=lifespan,
)

# CORS (comma-separated CORS_ORIGINS overrides the local defaults)
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8501").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# SCHEDULED JOBS
# ============================================================================

def _purge_sessions_job():
    """Drop sessions idle longer than SESSION_TTL_DAYS — runs hourly."""
    db = SessionLocal()
    try:
        purge_expired_sessions(db)
    except Exception as exc:
        logger.error("Session purge job failed: %s", exc, exc_info=True)
    finally:
        db.close()


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check"""
    return {
        "app": "MonkeyBets",
        "version": "1.0",
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    health = {
        "status": "healthy",
        "database": "connected",
        "scheduler": "running",
        "change_subscribers": change_feed.subscriber_count,
    }

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    if not scheduler.running:
        health["status"] = "degraded"
        health["scheduler"] = "stopped"

    return health


@app.get("/api/public/props/{prop_id}", response_model=PublicPropResponse)
async def get_shared_prop(
    prop_id: str,
    monkey: Optional[Monkey] = Depends(get_optional_monkey),
    db: Session = Depends(get_db),
):
    """Shareable-link view of a single prop.  No sign-in required."""
    return build_public_prop(db, prop_id, monkey.id if monkey else None)


@app.get("/api/stream")
async def stream_changes(
    request: Request,
    tables: str = Query(default=",".join(WATCHED_TABLES), description="Comma-separated tables"),
):
    """SSE stream: one `change` event per write to the watched tables."""
    wanted = [t.strip() for t in tables.split(",") if t.strip()]
    if not wanted or any(t not in WATCHED_TABLES for t in wanted):
        raise HTTPException(
            status_code=422,
            detail=f"tables must be a subset of {', '.join(WATCHED_TABLES)}",
        )

    return StreamingResponse(
        change_stream(request, wanted),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ============================================================================
# AUTH
# ============================================================================

@app.post("/api/auth/send-code")
async def send_verification_code(
    payload: SendCodeRequest,
    verifier: PhoneVerifier = Depends(get_phone_verifier),
):
    """Text a one-time code to the phone."""
    verifier.send_code(payload.phone)
    return {"message": "Verification code sent", "phone": payload.phone}


def _require_valid_code(verifier: PhoneVerifier, payload: VerifyCodeRequest) -> None:
    if not verifier.check_code(payload.phone, payload.code):
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")


@app.post("/api/auth/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def sign_up_monkey(
    payload: VerifyCodeRequest,
    db: Session = Depends(get_db),
    verifier: PhoneVerifier = Depends(get_phone_verifier),
):
    """Verify the code, create the account and open a session."""
    if find_by_phone(db, payload.phone) is not None:
        raise PhoneAlreadyRegistered("Phone number already registered")
    _require_valid_code(verifier, payload)

    monkey = sign_up(db, payload.phone)
    token = open_session(db, monkey)
    return AuthResponse(token=token, monkey=MonkeyResponse.model_validate(monkey))


@app.post("/api/auth/sign-in", response_model=AuthResponse)
async def sign_in_monkey(
    payload: VerifyCodeRequest,
    db: Session = Depends(get_db),
    verifier: PhoneVerifier = Depends(get_phone_verifier),
):
    """Verify the code for an existing account and open a session."""
    if find_by_phone(db, payload.phone) is None:
        raise AccountNotFound("Account not found. Please sign up first.")
    _require_valid_code(verifier, payload)

    monkey = sign_in(db, payload.phone)
    token = open_session(db, monkey)
    logger.info("Monkey %s signed in", monkey.id)
    return AuthResponse(token=token, monkey=MonkeyResponse.model_validate(monkey))


@app.get("/api/auth/me", response_model=MonkeyResponse)
async def whoami(monkey: Monkey = Depends(get_current_monkey)):
    return monkey


@app.post("/api/auth/sign-out")
async def sign_out_monkey(
    token: Optional[str] = Security(SESSION_HEADER),
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    close_session(db, token)
    logger.info("Monkey %s signed out", monkey.id)
    return {"message": "Signed out"}


# ============================================================================
# AUTHENTICATED ENDPOINTS - DASHBOARD & PROPS
# ============================================================================

@app.get("/api/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    """Live props created by the monkey and live wagers placed by it, with odds."""
    return build_dashboard(db, monkey.id)


@app.get("/api/props", response_model=List[PropResponse])
async def list_my_props(
    scope: str = Query(default="live", pattern="^(live|all)$"),
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    """
    Props created by the monkey.

    live — unresolved only, newest first
    all  — unresolved first, then resolved; newest first within each
    """
    props = list_created_props(db, monkey.id) if scope == "live" else list_props_by_owner(db, monkey.id)
    return [prop_to_dict(p) for p in props]


@app.post("/api/props", response_model=PropResponse, status_code=status.HTTP_201_CREATED)
async def create_new_prop(
    payload: PropCreate,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    prop = create_prop(db, monkey.id, payload.name, payload.expiry_date)
    await change_feed.publish("props", "insert")
    return prop_to_dict(prop)


@app.get("/api/props/{prop_id}", response_model=PropDetailResponse)
async def get_prop_detail(
    prop_id: str,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    return build_prop_detail(db, prop_id, monkey.id)


@app.get("/api/props/{prop_id}/wager", response_model=WagerDetailResponse)
async def get_wager_detail(
    prop_id: str,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    """The monkey's own wager on a prop, with potential payout."""
    return build_wager_detail(db, prop_id, monkey.id)


@app.post(
    "/api/props/{prop_id}/wagers",
    response_model=WagerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_new_wager(
    prop_id: str,
    payload: WagerCreate,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    wager = place_wager(db, prop_id, monkey.id, payload.prediction, payload.bananas)
    await change_feed.publish("wagers", "insert")
    return wager_to_dict(wager)


@app.put("/api/props/{prop_id}/result", response_model=PropResponse)
async def settle_prop(
    prop_id: str,
    payload: ResultUpdate,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    """Set the outcome of an expired prop.  Creator only; cannot be changed afterwards."""
    prop = set_result(db, prop_id, monkey.id, payload.result)
    await change_feed.publish("props", "update")
    return prop_to_dict(prop)


@app.delete("/api/props/{prop_id}")
async def delete_prop(
    prop_id: str,
    monkey: Monkey = Depends(get_current_monkey),
    db: Session = Depends(get_db),
):
    """Soft-delete an unresolved prop.  Creator only."""
    prop = soft_delete_prop(db, prop_id, monkey.id)
    await change_feed.publish("props", "update")
    return {
        "message": "Prop deleted",
        "prop_id": prop.id,
        "deleted_at": prop.deleted_at.isoformat(),
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(MonkeyBetsError)
async def monkeybets_exception_handler(request, exc: MonkeyBetsError):
    """Domain errors carry their own player-facing message and status"""
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
