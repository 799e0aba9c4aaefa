from fastapi import APIRouter

from athena.api.v1 import qa

api_router = APIRouter()

api_router.include_router(qa.router)
