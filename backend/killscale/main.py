from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from sqlalchemy import text
from typing import List
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from killscale.database import get_db, engine, Base
from killscale import models  # noqa: F401  (registers tables on Base.metadata)
from killscale.config import get_settings, get_cors_origins
from killscale.errors import register_exception_handlers

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

settings_for_cors = get_settings()
cors_allow_origins: List[str] = get_cors_origins(settings_for_cors)
if cors_allow_origins:
    logger.info("Allowing CORS origins: %s", cors_allow_origins)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="KillScale API", version="0.1.0")

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"https?://localhost(:\d+)?$",
    allow_origins=cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api")
def api_info():
    """API information endpoint"""
    return {"message": "KillScale API", "version": "0.1.0"}


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Check if API and database are working"""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")


# Include Meta campaign management router
from killscale.routers import meta
app.include_router(meta.router)

# Include Creative Studio router
from killscale.routers import creative_studio
app.include_router(creative_studio.router)

# Include AI insights router
from killscale.routers import ai
app.include_router(ai.router)

# Include connections router
from killscale.routers import connections
app.include_router(connections.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
