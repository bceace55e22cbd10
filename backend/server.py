"""
Inspection Intake CRM - API Backend

Start with:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config import CORS_ORIGINS, client, get_db

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("intake_crm")

app = FastAPI(
    title="Inspection Intake CRM",
    description="Converts legacy portal customers into local CRM customers",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== ROUTES ====================

from routes import proxy, dashboard, customers, contact_records

app.include_router(proxy.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(customers.router, prefix="/api")
app.include_router(contact_records.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "Inspection Intake CRM API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP ====================

async def ensure_indexes():
    db = get_db()
    await db.customers.create_index("legacy_id", unique=True)
    await db.customers.create_index("id", unique=True)
    await db.customers.create_index("created_at")
    await db.customers.create_index("last_contact_at")
    await db.sessions.create_index("token")
    await db.event_log.create_index("created_at")
    await db.event_log.create_index("entity_id")


@app.on_event("startup")
async def startup():
    logger.info("Inspection Intake CRM starting")
    await ensure_indexes()
    logger.info("MongoDB indexes ready")


@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
