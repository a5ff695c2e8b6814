from fastapi import APIRouter

from dispatch_migration.api.routes import migrations

api_router = APIRouter()

api_router.include_router(migrations.router, prefix="/migrations", tags=["migrations"])
