"""MindTrack API - FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routes import assessments, events, mood

settings = get_settings()

app = FastAPI(
    title="MindTrack API",
    description="Assessments, mood check-ins, streaks and push events",
    version="1.0.0",
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include routers
app.include_router(assessments.router)
app.include_router(mood.router)
app.include_router(events.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for the API."""
    return {"status": "healthy", "service": "mindtrack-api"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mindtrack_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
