"""API route modules."""
from .assessments import router as assessments_router
from .events import router as events_router
from .mood import router as mood_router

__all__ = [
    "assessments_router",
    "events_router",
    "mood_router",
]
