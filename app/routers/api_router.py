from fastapi import APIRouter
from app.routers import sickness, notifications

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(sickness.router, tags=["Sickness"])
api_router.include_router(notifications.router, tags=["Notifications"])
