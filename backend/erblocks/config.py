import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./erblocks.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Optimistic retries for serialization failures around check-then-write
BLOCK_TX_RETRIES = int(os.getenv("BLOCK_TX_RETRIES", "3"))
BLOCK_TX_BACKOFF_SECONDS = float(os.getenv("BLOCK_TX_BACKOFF_SECONDS", "0.05"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
