import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./practice.db")

# Business hours used by the availability finder (24h clock, hour-aligned)
BUSINESS_HOURS_START = int(os.getenv("BUSINESS_HOURS_START", "9"))
BUSINESS_HOURS_END = int(os.getenv("BUSINESS_HOURS_END", "17"))
SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "60"))
# Minutes kept clear after each offered slot
SLOT_BUFFER_MINUTES = int(os.getenv("SLOT_BUFFER_MINUTES", "0"))
# Practice-wide lunch break as HH:MM, both or neither; unset means no break
LUNCH_BREAK_START = os.getenv("LUNCH_BREAK_START") or None
LUNCH_BREAK_END = os.getenv("LUNCH_BREAK_END") or None

# Recurring series generation
DEFAULT_SERIES_COUNT = int(os.getenv("DEFAULT_SERIES_COUNT", "10"))
MAX_SERIES_COUNT = int(os.getenv("MAX_SERIES_COUNT", "365"))

# Frontend origins allowed to call the API
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")
