import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livequiz.api.routes import admin, root
from livequiz.api.ws import router as ws_router
from livequiz.core.config import settings
from livequiz.core.logging import configure_logging
from livequiz.dependencies import record_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.uses_database:
        from livequiz.db import init_db

        await init_db()
    if settings.seed_admin_username:
        admin_user = await record_store.ensure_admin(settings.seed_admin_username)
        logging.getLogger("admin").info("Default host principal id=%s username=%s", admin_user.id, admin_user.username)
    yield


app = FastAPI(title="Live Quiz", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# HTTP routes
app.include_router(root.router)
app.include_router(admin.router)

# WebSocket routes
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("livequiz.main:app", host="0.0.0.0", port=8000, reload=True)
