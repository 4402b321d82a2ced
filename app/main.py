"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router

app = FastAPI(
    title="AI Chat Relay",
    description="Live user/owner chat with a retrieval-augmented AI responder",
    version="0.1.0",
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


app.include_router(api_router)
