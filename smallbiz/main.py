import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smallbiz.api.portal import router as portal_router
from smallbiz.api.v1.businesses import router as businesses_router
from smallbiz.api.v1.estimates import router as estimates_router
from smallbiz.core.config import settings
from smallbiz.wiring.dependencies import get_estimate_sync_poller


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "business_id",
            "estimate_id",
            "request_id",
            "status",
            "checked",
            "updated",
            "failed",
            "applied",
            "path",
            "error",
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    poller = get_estimate_sync_poller() if settings.ESTIMATE_SYNC_ENABLED else None
    if poller is not None:
        poller.start()
    try:
        yield
    finally:
        if poller is not None:
            await poller.stop()


app = FastAPI(title="SmallBiz Booking Analytics", version="1.0.0", lifespan=lifespan)

app.include_router(businesses_router, prefix="/api/v1", tags=["analytics"])
app.include_router(estimates_router, prefix="/api/v1", tags=["estimates"])
app.include_router(portal_router, tags=["portal"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
