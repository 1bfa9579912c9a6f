import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .src.routers import chat
from .src.config import settings
from .src.logging import jlog
from .otel import init_tracing

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Shared connection pool for outbound chat-completion calls
    httpx_client = httpx.AsyncClient(timeout=settings.openai_timeout_s)
    app.state.httpx_client = httpx_client
    jlog(event="startup", port=settings.port, model_name=settings.openai_model)
    try:
        yield
    finally:
        await httpx_client.aclose()

app = FastAPI(title="Chat Relay API", version="1.0.0", lifespan=lifespan)
app.include_router(chat.router)

os.environ.setdefault("SERVICE_NAME", settings.service_name)
tracer = init_tracing(app, service_name=settings.service_name, service_version="v1")

@app.middleware("http")
async def cors(request: Request, call_next):
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response

@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError):
    jlog(event="invalid_request", path=request.url.path, errors=[e.get("type") for e in exc.errors()])
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request format.", "code": "INVALID_REQUEST", "show_socials": False},
    )

@app.get("/health")
def health():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
