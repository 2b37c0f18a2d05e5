import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_rag.api.routes import router as api_router
from portfolio_rag.config import public_settings, settings, setup_logging
from portfolio_rag.errors import PortfolioRAGError

logger = setup_logging()
app = FastAPI(title="Portfolio RAG Assistant")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("Application starting")
logger.info("Loaded settings: %s", public_settings())

ERROR_STATUS = {
    "validation_error": 400,
    "not_found": 404,
    "rate_limited": 429,
    "embedding_failure": 502,
    "generation_failure": 502,
    "store_unavailable": 503,
}


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.exception_handler(PortfolioRAGError)
async def portfolio_error_handler(request: Request, exc: PortfolioRAGError):
    status_code = ERROR_STATUS.get(exc.kind, 500)
    logger.error("Request failed", extra={"path": request.url.path, "kind": exc.kind, "error": str(exc)})
    return JSONResponse(status_code=status_code, content={"error": exc.message, "kind": exc.kind})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(api_router)


def run() -> None:
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    run()
