from fastapi import APIRouter

from evaluator.api.v1.endpoints import evaluate, result, upload

api_router = APIRouter()

api_router.include_router(upload.router, prefix="/upload", tags=["upload"])
api_router.include_router(evaluate.router, prefix="/evaluate", tags=["evaluate"])
api_router.include_router(result.router, prefix="/result", tags=["result"])
