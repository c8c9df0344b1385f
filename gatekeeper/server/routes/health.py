"""
Health check endpoint.
"""

from fastapi import APIRouter

from ..state import get_engine, get_prompt_surface

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "engine_ready": get_engine() is not None,
        "prompts_ready": get_prompt_surface() is not None,
    }
