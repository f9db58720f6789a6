"""
Router Dependencies
"""

from datetime import timedelta

from fastapi import Request

from core.engine import MonitoringEngine


def get_engine(request: Request) -> MonitoringEngine:
    """Engine owned by the app (set in create_app / lifespan)"""
    return request.app.state.engine


def seconds(value: float) -> timedelta:
    return timedelta(seconds=value)


def sse(payload: str) -> str:
    return f"data: {payload}\n\n"


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}
