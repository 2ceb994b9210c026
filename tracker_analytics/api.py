from __future__ import annotations

import json
import logging
from typing import Callable

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .aggregation import utc_now
from .cache import key_for_request
from .errors import TrackerAnalyticsError
from .models import Scope
from .periods import parse_date_range, resolve_period

logger = logging.getLogger(__name__)

router = APIRouter()


class TrackerCreate(BaseModel):
    trackerName: str | None = None
    targetHours: int | None = None
    userId: str | None = None
    description: str | None = None
    workDays: list[str] | None = None


class TrackerUpdate(BaseModel):
    trackerName: str | None = None
    targetHours: int | None = None
    description: str | None = None
    workDays: list[str] | None = None


def _status_for(payload: dict, success_status: int = 200) -> int:
    return success_status if payload.get("success") else 400


async def read_through(request: Request, compute: Callable[[], dict]) -> Response:
    """Serve from the response cache, or compute, store and return.

    ``compute`` is a pure handler; only its return value decides whether the
    body gets cached. Hits return the stored body unchanged.
    """
    cache = request.app.state.cache
    key = None
    if request.method == "GET":
        key = key_for_request(request.scope["route"].path, request.path_params, request.query_params)

    if key is not None:
        cached = await cache.get(key)
        if cached is not None:
            return Response(content=cached, media_type="application/json")

    payload = compute()
    body = json.dumps(payload)
    if key is not None:
        await cache.set(key, body, payload)
    return Response(content=body, status_code=_status_for(payload), media_type="application/json")


async def write_through(request: Request, compute: Callable[[], dict], success_status: int = 200) -> Response:
    """Run a write and schedule invalidation of the affected user's cache entries."""
    payload = compute()
    task = request.app.state.invalidator.background_task(request.path_params, request.query_params, payload)
    return JSONResponse(payload, status_code=_status_for(payload, success_status), background=task)


def _tracker_param(tracker_id: str | None) -> str | None:
    return tracker_id or None


# Analytics

@router.get("/users/{user_id}/daily-totals")
async def daily_totals(
    request: Request,
    user_id: str,
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    date_range = parse_date_range(start_date, end_date)
    scope = Scope(user_id, _tracker_param(tracker_id))
    now = utc_now()
    return await read_through(request, lambda: request.app.state.analytics.daily_totals(scope, date_range, now))


@router.get("/users/{user_id}/daily-totals/{period}")
async def daily_totals_for_period(
    request: Request,
    user_id: str,
    period: str,
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    now = utc_now()
    date_range = resolve_period(period, now.date())
    scope = Scope(user_id, _tracker_param(tracker_id))
    return await read_through(request, lambda: request.app.state.analytics.daily_totals(scope, date_range, now))


@router.get("/users/{user_id}/total-hours")
async def total_hours(
    request: Request,
    user_id: str,
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    date_range = parse_date_range(start_date, end_date)
    scope = Scope(user_id, _tracker_param(tracker_id))
    now = utc_now()
    return await read_through(request, lambda: request.app.state.analytics.total_hours(scope, date_range, now))


@router.get("/users/{user_id}/total-hours/{period}")
async def total_hours_for_period(
    request: Request,
    user_id: str,
    period: str,
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    now = utc_now()
    date_range = resolve_period(period, now.date())
    scope = Scope(user_id, _tracker_param(tracker_id))
    return await read_through(request, lambda: request.app.state.analytics.total_hours(scope, date_range, now))


@router.get("/users/{user_id}/productivity-trend")
async def productivity_trend(
    request: Request,
    user_id: str,
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    date_range = parse_date_range(start_date, end_date)
    scope = Scope(user_id, _tracker_param(tracker_id))
    now = utc_now()
    return await read_through(
        request, lambda: request.app.state.analytics.productivity_trend(scope, date_range, now)
    )


@router.get("/users/{user_id}/productivity-trend/{period}")
async def productivity_trend_for_period(
    request: Request,
    user_id: str,
    period: str,
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    now = utc_now()
    date_range = resolve_period(period, now.date())
    scope = Scope(user_id, _tracker_param(tracker_id))
    return await read_through(
        request, lambda: request.app.state.analytics.productivity_trend(scope, date_range, now)
    )


@router.get("/users/{user_id}/today")
async def today_stats(
    request: Request,
    user_id: str,
    tracker_id: str | None = Query(None, alias="trackerId"),
):
    now = utc_now()
    return await read_through(
        request, lambda: request.app.state.analytics.today_stats(user_id, _tracker_param(tracker_id), now)
    )


@router.get("/sessions/{user_id}/active")
async def active_sessions(request: Request, user_id: str):
    now = utc_now()
    return await read_through(request, lambda: request.app.state.trackers.list_active_sessions(user_id, now))


# Trackers

@router.post("/trackers")
async def add_tracker(request: Request, body: TrackerCreate):
    trackers = request.app.state.trackers
    return await write_through(
        request,
        lambda: trackers.add_tracker(
            body.userId,
            body.trackerName,
            body.targetHours,
            description=body.description,
            work_days=body.workDays,
        ),
        success_status=201,
    )


@router.get("/trackers")
async def list_trackers(request: Request, user_id: str | None = Query(None, alias="userId")):
    payload = request.app.state.trackers.list_trackers(user_id)
    return JSONResponse(payload, status_code=_status_for(payload))


@router.put("/trackers/{tracker_id}")
async def edit_tracker(request: Request, tracker_id: str, body: TrackerUpdate):
    trackers = request.app.state.trackers
    return await write_through(
        request,
        lambda: trackers.edit_tracker(
            tracker_id,
            name=body.trackerName,
            target_hours=body.targetHours,
            description=body.description,
            work_days=body.workDays,
        ),
    )


@router.delete("/trackers/{tracker_id}")
async def delete_tracker(request: Request, tracker_id: str):
    return await write_through(request, lambda: request.app.state.trackers.delete_tracker(tracker_id))


@router.post("/trackers/{tracker_id}/start")
async def start_tracker(request: Request, tracker_id: str):
    return await write_through(request, lambda: request.app.state.trackers.start_tracker(tracker_id))


@router.post("/trackers/{tracker_id}/stop")
async def stop_tracker(request: Request, tracker_id: str):
    return await write_through(request, lambda: request.app.state.trackers.stop_tracker(tracker_id))


@router.post("/trackers/{tracker_id}/archive")
async def archive_tracker(request: Request, tracker_id: str):
    return await write_through(request, lambda: request.app.state.trackers.archive_tracker(tracker_id))


@router.post("/trackers/{tracker_id}/unarchive")
async def unarchive_tracker(request: Request, tracker_id: str):
    return await write_through(request, lambda: request.app.state.trackers.unarchive_tracker(tracker_id))


@router.get("/trackers/{tracker_id}/sessions")
async def tracker_sessions(request: Request, tracker_id: str):
    payload = request.app.state.trackers.list_sessions(tracker_id)
    return JSONResponse(payload, status_code=_status_for(payload))


@router.get("/trackers/{tracker_id}/stats")
async def tracker_stats(request: Request, tracker_id: str):
    payload = request.app.state.analytics.work_stats(tracker_id, utc_now())
    return JSONResponse(payload, status_code=_status_for(payload))


# Errors

async def _domain_error(request: Request, exc: TrackerAnalyticsError) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(exc)}, status_code=400)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse({"success": False, "error": f"{field}: {message}" if field else message}, status_code=400)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)


def register_routes(app: FastAPI) -> None:
    """Attach routes and error envelopes. Called once while building the app."""
    app.include_router(router)
    app.add_exception_handler(TrackerAnalyticsError, _domain_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
