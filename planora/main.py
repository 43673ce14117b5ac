"""
FastAPI Application Entry Point.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import settings
from .services.llm_client import get_llm_client


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Create FastAPI app
app = FastAPI(
    title="Planora Event Assistant",
    description="Conversational event creation: collects event details in chat, plans and creates the event",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "llm_provider": settings.llm_provider,
        "llm_model": get_llm_client().model,
        "persistence": settings.persistence_backend
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "planora.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
