from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from ordersync import __version__
from ordersync.api import webhooks, integrations, orders
from ordersync.api.rate_limit import limiter
from ordersync.core.config import settings
from ordersync.core.exceptions import OrderSyncError
from ordersync.core.logging import setup_logging, log_request
import logging
import time

setup_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Order Sync",
    description="Marketplace order webhooks and status synchronization",
    version=__version__
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(OrderSyncError)
async def order_sync_error_handler(request: Request, exc: OrderSyncError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: {', '.join(f for f in fields if f) or 'body'}"}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration_ms = round((time.time() - start_time) * 1000, 2)
    log_request(
        logger,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        ip_address=request.client.host if request.client else None
    )

    return response


app.include_router(webhooks.router)
app.include_router(integrations.router)
app.include_router(orders.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Application starting up", extra={'event': 'startup', 'environment': settings.ENVIRONMENT})


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutting down", extra={'event': 'shutdown'})


@app.get("/health")
def health_check():
    logger.debug("Health check performed")
    return {"status": "healthy", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
