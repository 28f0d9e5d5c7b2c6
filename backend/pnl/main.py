from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pnl.core.config import settings
from pnl.core.errors import EngineError
from pnl.core.logging import setup_logging
from pnl.api.routes.audit import router as audit_router
from pnl.api.routes.catalog import router as catalog_router
from pnl.api.routes.legal_entities import router as legal_entities_router
from pnl.api.routes.loans import router as loans_router
from pnl.api.routes.payments import router as payments_router
from pnl.api.routes.reconcile import router as reconcile_router
from pnl.api.routes.records import router as records_router
from pnl.api.routes.safe import router as safe_router

setup_logging(settings.log_level)

app = FastAPI(title="pnl")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
def _engine_error(request: Request, exc: EngineError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code})


@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(loans_router)
app.include_router(payments_router)
app.include_router(reconcile_router)
app.include_router(records_router)
app.include_router(catalog_router)
app.include_router(legal_entities_router)
app.include_router(safe_router)
app.include_router(audit_router)
