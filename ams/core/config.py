import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

DATABASE_URL = os.getenv("AMS_DATABASE_URL", f"sqlite:///{BASE_DIR}/ams.db")

# Live list views
DEBOUNCE_SECONDS = float(os.getenv("AMS_DEBOUNCE_SECONDS", "0.3"))
PAGE_SIZE = 12

# Deadline classification
DUE_SOON_DAYS = 7
GRACE_PERIOD_MINUTES = 10  # submissions within 10 mins after due count as grace period

# None means unlimited attempts unless the assessment sets its own limit
DEFAULT_MAX_ATTEMPTS = None
