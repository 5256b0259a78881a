"""Health and ready endpoints."""
import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from apps.storefront.config import get_settings
from apps.storefront.deps import get_db

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "service": "storefront"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    s = get_settings()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        return JSONResponse({"status": "error", "detail": str(e)[:200]}, status_code=503)

    # outbox delivery goes through RQ
    try:
        r = redis.Redis(host=s.redis_host, port=s.redis_port, socket_connect_timeout=2)
        r.ping()
    except Exception as e:
        return JSONResponse({"status": "error", "detail": f"redis: {str(e)[:200]}"}, status_code=503)

    return {"status": "ok"}
