import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pos_terminals import config
from pos_terminals.database import Base, engine
from pos_terminals.errors import InvalidInput, TerminalError
from pos_terminals.oauth import router as oauth_router
from pos_terminals.routes import router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="POS Terminal Payments")

app.include_router(oauth_router)
app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(TerminalError)
async def terminal_error_handler(request: Request, exc: TerminalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    error = InvalidInput("Invalid request body")
    if request.url.path.startswith("/api/terminals/payment-"):
        error.extra["status"] = "error"
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
