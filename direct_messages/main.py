import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from direct_messages.config import get_settings
from direct_messages.database.connection import close_mongo_connection, connect_to_mongo, get_database
from direct_messages.exceptions import MessagingError
from direct_messages.repositories.message_repository import MessageRepository, store_errors
from direct_messages.routers.chat import router as chat_router
from direct_messages.routers.conversations import router as conversations_router


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    try:
        await MessageRepository(get_database()).ensure_indexes()
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="Direct Messages", lifespan=lifespan)


app.include_router(chat_router)
app.include_router(conversations_router)


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.get("/")
async def root():

    db = get_database()
    with store_errors("ping"):
        await db.command("ping")
    return {"message": "Connected to MongoDB!", "database": db.name}
