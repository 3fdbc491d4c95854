"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from rideshare.api.routes import requests, votes, users, admin

api_router = APIRouter()

# Include all route modules
api_router.include_router(requests.router)
api_router.include_router(votes.router)
api_router.include_router(users.router)
api_router.include_router(admin.router)
