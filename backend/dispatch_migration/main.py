from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dispatch_migration.api.router import api_router
from dispatch_migration.core.config import settings
from dispatch_migration.core.errors import MigrationError
from dispatch_migration.core.logging import configure_logging

configure_logging(settings.log_level, settings.log_json)

app = FastAPI(title="Dispatch Migration API", version="0.1.0")
app.include_router(api_router, prefix="/api")


@app.exception_handler(MigrationError)
def migration_error_handler(request: Request, exc: MigrationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
