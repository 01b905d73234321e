import os

DATABASE_URI = os.environ["CARWASH_DATABASE_URI"]

JWT_SECRET = os.environ["CARWASH_JWT_SECRET"]
JWT_AUDIENCE = os.environ.get("CARWASH_JWT_AUDIENCE", "authenticated")
JWT_ALGORITHM = "HS256"

SLOT_DURATION_MINUTES = int(os.environ.get("CARWASH_SLOT_DURATION_MINUTES", "60"))
BOOKING_WINDOW_DAYS = int(os.environ.get("CARWASH_BOOKING_WINDOW_DAYS", "30"))
CANCEL_CUTOFF_MINUTES = int(os.environ.get("CARWASH_CANCEL_CUTOFF_MINUTES", "60"))

SCHEDULER_INTERVAL_MINUTES = int(
    os.environ.get("CARWASH_SCHEDULER_INTERVAL_MINUTES", "15")
)
REMINDER_LEAD_HOURS = int(os.environ.get("CARWASH_REMINDER_LEAD_HOURS", "24"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CARWASH_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
