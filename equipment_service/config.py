import os

SERVICE_NAME = "equipment-service"

EQUIPMENT_DB = os.getenv("EQUIPMENT_DB") or "sqlite+aiosqlite:///./equipment.db"

REDIS_URL = os.getenv("REDIS_URL") or "redis://localhost:6379/0"

RABBIT_URL = os.getenv("RABBIT_URL")  # optional, events are skipped without it

# "sql" (default) or "memory" for the demo store with sample equipment
STORAGE_BACKEND = (os.getenv("STORAGE_BACKEND") or "sql").lower()

AUTO_CREATE_TABLES = (os.getenv("AUTO_CREATE_TABLES") or "true").lower() == "true"
SEED_SAMPLE_DATA = (os.getenv("SEED_SAMPLE_DATA") or "false").lower() == "true"

# no auth: every request acts on behalf of this user
DEFAULT_USER_ID = int(os.getenv("DEFAULT_USER_ID") or "1")
DEFAULT_USERNAME = os.getenv("DEFAULT_USERNAME") or "testuser"

# ---- External catalog ----
CATALOG_API_URL = (os.getenv("CATALOG_API_URL") or "http://catalog:8000/api").rstrip("/")
CATALOG_LOGIN = os.getenv("CATALOG_LOGIN") or "user1"
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT") or "3.0")

# the upstream search rejects requests without any selector
CATALOG_DEFAULT_FILTER_NAME = os.getenv("CATALOG_DEFAULT_FILTER_NAME") or "type"
CATALOG_DEFAULT_FILTER_VALUE = os.getenv("CATALOG_DEFAULT_FILTER_VALUE") or "equipment"

LOG_JSON = (os.getenv("LOG_JSON") or "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
