"""
Configuration and shared helpers
"""

import os
import secrets
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'inspection_intake')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# Legacy portal endpoints
PORTAL_CUSTOMER_LATEST_URL = os.environ.get(
    'PORTAL_CUSTOMER_LATEST_URL',
    'https://app.dhi-portal.net/customers/latest'
)
PORTAL_REFRESH_INSPECTION_URL = os.environ.get(
    'PORTAL_REFRESH_INSPECTION_URL',
    'https://app.dhi-portal.net/customers/refreshLatestInspection'
)

# Cache lifetimes
CUSTOMER_CACHE_TTL_MINUTES = int(os.environ.get('CUSTOMER_CACHE_TTL_MINUTES', '1440'))
INTAKE_TOKEN_TTL_MINUTES = int(os.environ.get('INTAKE_TOKEN_TTL_MINUTES', '30'))

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')


# ==================== DATABASE ACCESS ====================

_db_override = None


def get_db():
    """Return the active database handle (test override first)."""
    if _db_override is not None:
        return _db_override
    return db


def set_db(database) -> None:
    """Inject a database handle for testing, or None to restore the default."""
    global _db_override
    _db_override = database


# ==================== HELPERS ====================

def generate_token() -> str:
    """Opaque token for intake handoffs"""
    return secrets.token_urlsafe(15)

def new_request_id() -> str:
    """Short correlation id threaded through one operation's log lines"""
    return secrets.token_hex(4)

def now_iso() -> str:
    """Current UTC date/time as ISO string"""
    return datetime.now(timezone.utc).isoformat()
