from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .db.core import StoreError, create_tables
from .logging_config import setup_logging, get_logger
from .routers.accounts import router as accounts_router
from .routers.categories import router as categories_router
from .routers.transactions import router as transactions_router
from .routers.subscriptions import router as subscriptions_router
from .routers.budgets import router as budgets_router

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    create_tables()
    yield


app = FastAPI(lifespan=lifespan)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


app.include_router(accounts_router)
app.include_router(categories_router)
app.include_router(transactions_router)
app.include_router(subscriptions_router)
app.include_router(budgets_router)


@app.get("/")
def read_root():
    return "Server is running."
