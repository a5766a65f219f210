from fastapi import FastAPI

from availability.api.cron import router as cron_router
from availability.api.v1.booking import router as booking_router
from availability.core.config import settings
from availability.core.logging_config import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Appointment Availability", version="1.0.0")

app.include_router(booking_router, prefix="/api/v1/booking", tags=["booking"])
app.include_router(cron_router, prefix="/api/cron", tags=["cron"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
