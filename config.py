import os

from dotenv import load_dotenv

load_dotenv()

# Required: there is no sensible default database
DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma separated, "*" for local development
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Availability grid: one slot per listed hour (3 PM to 7 PM by default)
GRID_SLOT_HOURS = [int(h) for h in os.getenv("GRID_SLOT_HOURS", "15,16,17,18,19").split(",") if h.strip()]
SLOT_LENGTH_MINUTES = int(os.getenv("SLOT_LENGTH_MINUTES", "60"))

# Length of a practice booked from the grid (1.5 hours)
DEFAULT_PRACTICE_MINUTES = int(os.getenv("DEFAULT_PRACTICE_MINUTES", "90"))

# Entries shown per day in the month view before "+N more"
CALENDAR_DAY_CAP = int(os.getenv("CALENDAR_DAY_CAP", "4"))

# Also check candidates of one batch against each other
STRICT_BATCH_CONFLICTS = os.getenv("STRICT_BATCH_CONFLICTS", "false").lower() == "true"
