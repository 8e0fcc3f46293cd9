import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.v1.router import router as v1_router
from backend.app.config import settings
from backend.app.logging_config import configure_logging
from backend.services.errors import StockError

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="KGL STOCK", version=settings.api_version)
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(StockError)
async def stock_error_handler(request: Request, exc: StockError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
