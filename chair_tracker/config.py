"""Environment configuration for the chair tracker."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)

DEFAULT_DB_PATH = Path(__file__).parent / "clinic_ledger" / "chair_tracker.db"

DB_PATH = Path(os.getenv("CHAIR_TRACKER_DB_PATH", str(DEFAULT_DB_PATH)))
KEY_PREFIX = os.getenv("CHAIR_TRACKER_KEY_PREFIX", "@cliniapp_")
LOG_LEVEL = os.getenv("CHAIR_TRACKER_LOG_LEVEL", "WARNING").upper()

# Chairs seeded on first load and after a full reset
INITIAL_CHAIR_COUNT = 6
