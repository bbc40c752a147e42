from contextlib import asynccontextmanager

from fastapi import FastAPI

from .routes import router
from ..core.orchestrator import LocationResolver


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with LocationResolver() as resolver:
        app.state.resolver = resolver
        yield


app = FastAPI(title="PlaceFinder API", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")
