from fastapi import APIRouter

from cardgen.api.v1.generate import router as generate_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(generate_router)

# Same endpoint under the edge-function path existing clients call
functions_router = APIRouter(prefix="/functions/v1")
functions_router.include_router(generate_router)
