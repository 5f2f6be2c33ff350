from fastapi import APIRouter

from fallback_proxy.api.v1.openai import router as openai_router

api_v1_router = APIRouter(prefix="/v1")
api_v1_router.include_router(openai_router)
