import os
from dotenv import load_dotenv

# 1. Load environment variables from .env file
load_dotenv()

# 2. Database. Unset means the service runs on the in-memory store only.
DATABASE_URL = os.environ.get("DATABASE_URL") or None

# 3. In-memory store persistence (dev data survives restarts). Empty disables it.
DATA_FILE = os.environ.get("DATA_FILE", os.path.join("data", "bookings.json"))

# 4. HTTP plumbing
MAX_HEADER_BYTES = int(os.environ.get("MAX_HEADER_BYTES", "8192"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
PORT = int(os.environ.get("PORT", "3001"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
