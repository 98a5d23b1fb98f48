from fastapi import APIRouter
from errors import ok

router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    return {"status": "ok"}


@router.get("/health")
async def health():
    """
    Health-check endpoint.
    """
    return ok()
