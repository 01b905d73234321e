import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.admin.router import router as admin_router
from src.appointment.router import router as appointment_router
from src.base.config import CORS_ORIGINS, SCHEDULER_INTERVAL_MINUTES
from src.base.errors import register_error_handlers
from src.notification.router import router as notification_router
from src.plan.router import router as plan_router
from src.scheduler import complete_past_appointments, send_appointment_reminders
from src.scheduling.router import admin_router as admin_scheduling_router
from src.scheduling.router import router as scheduling_router
from src.user.router import router as user_router
from src.vehicle.router import router as vehicle_router

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        send_appointment_reminders,
        "interval",
        minutes=SCHEDULER_INTERVAL_MINUTES,
        id="send_appointment_reminders",
    )
    scheduler.add_job(
        complete_past_appointments,
        "interval",
        minutes=SCHEDULER_INTERVAL_MINUTES,
        id="complete_past_appointments",
    )
    scheduler.start()
    yield
    scheduler.shutdown()


app = FastAPI(title="Car Wash Booking", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(user_router)
app.include_router(vehicle_router)
app.include_router(plan_router)
app.include_router(scheduling_router)
app.include_router(appointment_router)
app.include_router(notification_router)
app.include_router(admin_router)
app.include_router(admin_scheduling_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
