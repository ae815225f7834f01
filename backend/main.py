from datetime import date
from typing import Optional, Union
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from config import CORS_ORIGINS, DATABASE_URL, DEBUG, HOST, PORT, SEED_SAMPLE_DATA
from constants import (
    LEADERBOARD_PERIODS, MATCH_CAPACITY_MAX, MATCH_CAPACITY_MIN, MATCH_STATUS_CANCELLED, MATCH_TYPES,
    NOTIFICATION_KINDS
)
from dependencies import Services, build_storage, get_services
from errors import MatchCancelled, MatchNotFound, NotJoined, SchedulerError
from logger import get_logger
from models import (
    ByName, ByUserId, LeaveResponse, Match, MatchCreate, MatchWithRsvps, Notification,
    NotificationCreate, PlayerStat, RsvpWithUser, TeamUpdate, User, UserStats
)
from seed import seed_sample_data

logger = get_logger(__name__)

app = FastAPI(
    title="VB Scheduler API",
    version="3.0.0",
    docs_url="/api/docs" if DEBUG else None,
    redoc_url="/api/redoc" if DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Storage is chosen once here; tests swap in their own Services
app.state.services = Services(build_storage())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": True, "status_code": exc.status_code, "message": exc.detail, "path": str(request.url.path)}
    )


@app.exception_handler(SchedulerError)
async def scheduler_exception_handler(request: Request, exc: SchedulerError):
    content = {
        "error": True,
        "status_code": exc.status_code,
        "kind": exc.kind,
        "message": exc.message,
        "retryable": exc.retryable,
        "path": str(request.url.path),
    }
    if hasattr(exc, "field"):
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": True, "status_code": 500, "message": "Internal server error", "path": str(request.url.path)}
    )


@app.on_event("startup")
def startup():
    services = app.state.services
    if services.storage.name == "postgres":
        from database import init_db
        init_db(DATABASE_URL)
    if SEED_SAMPLE_DATA:
        seed_sample_data(services, services.today())
    logger.info("Scheduler started: storage=%s", services.storage.name)


def with_rsvps(services: Services, match: Match) -> MatchWithRsvps:
    roster = services.roster.roster(match.id)
    rsvps = []
    for rsvp in roster.confirmed + roster.waitlisted:
        rsvps.append(RsvpWithUser(**rsvp.model_dump(), user=services.storage.get_user(rsvp.user_id)))
    return MatchWithRsvps(
        **roster.match.model_dump(),
        confirmed_count=len(roster.confirmed),
        waitlist_count=len(roster.waitlisted),
        rsvps=rsvps,
    )


def list_with_rsvps(services: Services, matches: list[Match]) -> list[MatchWithRsvps]:
    results = []
    for match in matches:
        try:
            results.append(with_rsvps(services, match))
        except MatchNotFound:
            # deleted while we were listing
            continue
    return results


# ============ MATCHES ============

@app.get("/api/matches/week", response_model=list[MatchWithRsvps])
def get_week_matches(base_date: Optional[date] = Query(None, alias="date"),
                     services: Services = Depends(get_services)):
    matches = services.schedule.week_matches(base_date or services.today())
    return list_with_rsvps(services, matches)


@app.get("/api/matches", response_model=list[MatchWithRsvps])
def list_matches(start: date, end: date, services: Services = Depends(get_services)):
    return list_with_rsvps(services, services.schedule.matches_in_range(start, end))


@app.get("/api/matches/{match_id}", response_model=MatchWithRsvps)
def get_match(match_id: int, services: Services = Depends(get_services)):
    return with_rsvps(services, services.schedule.get_match(match_id))


@app.post("/api/matches", response_model=Match)
def create_match(match: MatchCreate, services: Services = Depends(get_services)):
    return services.schedule.create_match(**match.model_dump())


@app.post("/api/matches/slots", response_model=list[Match])
def ensure_slots(base_date: Optional[date] = None, services: Services = Depends(get_services)):
    return services.schedule.ensure_weekly_slots(base_date or services.today())


@app.post("/api/matches/{match_id}/cancel", response_model=Match)
def cancel_match(match_id: int, services: Services = Depends(get_services)):
    return services.schedule.cancel_match(match_id)


@app.delete("/api/matches/{match_id}")
def delete_match(match_id: int, services: Services = Depends(get_services)):
    services.schedule.delete_match(match_id)
    return {"message": "Match deleted"}


# ============ ROSTER ============

@app.post("/api/matches/{match_id}/join", response_model=RsvpWithUser)
def join_match(match_id: int, player: Union[ByName, ByUserId], services: Services = Depends(get_services)):
    match = services.schedule.get_match(match_id)
    if match.status == MATCH_STATUS_CANCELLED:
        raise MatchCancelled(match_id)
    user = services.identity.resolve(player)
    rsvp = services.roster.join(match_id, user.id)
    return RsvpWithUser(**rsvp.model_dump(), user=user)


@app.delete("/api/matches/{match_id}/leave", response_model=LeaveResponse)
def leave_match(match_id: int, player: Union[ByName, ByUserId], services: Services = Depends(get_services)):
    user = services.identity.lookup(player)
    if user is None:
        services.schedule.get_match(match_id)
        raise NotJoined(match_id, getattr(player, "name", None) or player.user_id)
    result = services.roster.leave(match_id, user.id)
    return LeaveResponse(success=True, promoted=result.promoted)


# ============ STATS ============

@app.get("/api/leaderboard", response_model=list[PlayerStat])
def get_leaderboard(period: str = "month", services: Services = Depends(get_services)):
    if period not in LEADERBOARD_PERIODS:
        raise HTTPException(status_code=400, detail=f"Period must be one of {', '.join(LEADERBOARD_PERIODS)}")
    return services.stats.leaderboard(period, services.today())


# ============ USERS ============

@app.get("/api/users", response_model=list[User])
def list_users(services: Services = Depends(get_services)):
    return services.identity.list_users()


@app.put("/api/users/{user_id}/team", response_model=User)
def update_team(user_id: int, update: TeamUpdate, services: Services = Depends(get_services)):
    return services.identity.update_team(user_id, update.team)


@app.get("/api/users/{user_id}/stats", response_model=UserStats)
def get_user_stats(user_id: int, services: Services = Depends(get_services)):
    return services.stats.user_stats(user_id, services.today())


# ============ NOTIFICATIONS ============

@app.get("/api/notifications/{user_id}", response_model=list[Notification])
def get_notifications(user_id: int, services: Services = Depends(get_services)):
    return services.notifications.list_pending(user_id, services.clock())


@app.post("/api/notifications", response_model=Notification)
def create_notification(notification: NotificationCreate, services: Services = Depends(get_services)):
    return services.notifications.schedule(**notification.model_dump())


@app.post("/api/notifications/{notification_id}/sent", response_model=Notification)
def mark_notification_sent(notification_id: int, services: Services = Depends(get_services)):
    return services.notifications.mark_sent(notification_id)


# ============ CONFIGURATION ============

@app.get("/api/config")
def get_config(services: Services = Depends(get_services)):
    return {
        "time_slots": services.schedule.time_slots,
        "match_types": MATCH_TYPES,
        "capacity": {
            "default": services.schedule.default_capacity,
            "min": MATCH_CAPACITY_MIN,
            "max": MATCH_CAPACITY_MAX,
        },
        "leaderboard_periods": LEADERBOARD_PERIODS,
        "notification_kinds": NOTIFICATION_KINDS,
    }


# ============ HEALTH CHECK ============

@app.get("/api/health")
def health_check(services: Services = Depends(get_services)):
    return {"status": "ok", "storage": services.storage.name}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT, reload=DEBUG)
