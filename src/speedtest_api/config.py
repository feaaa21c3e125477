"""
Runtime configuration loaded from environment variables.

Values can be set in a .env file at the project root or in the process
environment. Anything not set falls back to a local-development default.
"""
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# SQLAlchemy URL for the results database (SQLite file by default)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./speed-tests.db")

# Which key rejects duplicate submissions:
#   "submission_id" = client-generated token (default)
#   "composite"     = also address + submission minute + speeds
DEDUP_KEY = os.getenv("DEDUP_KEY", "submission_id")

# Header the upstream auth proxy uses to pass the caller's address
IDENTITY_HEADER = os.getenv("IDENTITY_HEADER", "x-address")

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))

# External geocoding services
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
IPAPI_URL = os.getenv("IPAPI_URL", "https://ipapi.co")
LOCATION_TIMEOUT_SECONDS = float(os.getenv("LOCATION_TIMEOUT_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
