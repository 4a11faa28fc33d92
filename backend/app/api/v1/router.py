from fastapi import APIRouter
from backend.app.api.v1.endpoints import tours, destinations, reviews, cache

api_v1_router = APIRouter()

api_v1_router.include_router(tours.router, tags=["Tours"])
api_v1_router.include_router(destinations.router, tags=["Destinations"])
api_v1_router.include_router(reviews.router, tags=["Reviews"])
api_v1_router.include_router(cache.router, tags=["Cache"])
