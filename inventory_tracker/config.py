import os
from dotenv import load_dotenv

load_dotenv() # Load .env file from project root if running locally

DATABASE_USER = os.getenv("POSTGRES_USER", "user")
DATABASE_PASSWORD = os.getenv("POSTGRES_PASSWORD", "password")
DATABASE_HOST = os.getenv("POSTGRES_HOST", "postgres") # Docker service name
DATABASE_PORT = os.getenv("POSTGRES_PORT", "5432")
DATABASE_NAME = os.getenv("POSTGRES_DB", "inventory_db")

# Async database URL for SQLAlchemy; DATABASE_URL wins when set (tests point it at sqlite)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DATABASE_USER}:{DATABASE_PASSWORD}@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}",
)
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")

# Which persistence adapter backs the collection: "sql" or "redis"
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()
INVENTORY_COLLECTION = os.getenv("INVENTORY_COLLECTION", "inventory")

REDIS_HOST = os.getenv("REDIS_HOST", "redis")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))

# Serialize mutations per item (name for adds, id for updates/deletes)
SERIALIZE_MUTATIONS = os.getenv("SERIALIZE_MUTATIONS", "true").lower() in ("1", "true", "yes")

# Public endpoint returning {"updated_at": ...}; empty disables the fetch
METADATA_URL = os.getenv("METADATA_URL", "")
METADATA_TIMEOUT_SECONDS = float(os.getenv("METADATA_TIMEOUT_SECONDS", "10.0"))

# For Uvicorn binding inside container
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
