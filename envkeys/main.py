from contextlib import asynccontextmanager

from fastapi import FastAPI

from envkeys.api.authorized_keys import router as authorized_keys_router
from envkeys.db import init_db
from envkeys.errors import register_error_handlers
from envkeys.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Environment Authorized Keys API", lifespan=lifespan)

configure_logging()
register_error_handlers(app)

app.include_router(authorized_keys_router)


@app.get("/health")
def health():
    return {"status": "ok"}
