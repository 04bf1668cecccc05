from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clubs_backend.database import get_db
from clubs_backend.permissions.flags import MAINTENANCE_ENABLED, ConfigFlags

site_settings_router = APIRouter()


@site_settings_router.get("/public")
async def public_site_settings(db: Session = Depends(get_db)):
    """Settings readable without authentication"""
    return {MAINTENANCE_ENABLED: ConfigFlags(db).maintenance_enabled}
