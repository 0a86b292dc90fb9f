# main.py
"""
Point d'entrée de l'API PharmaLink.
Enregistre tous les modules via leurs routers.

Architecture : modules verticaux (router → service → repository)
+ engine transversal pur (géo, éligibilité, machine à états, frais).
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmalink.core.config import settings
from pharmalink.core.logging import configure_logging
from pharmalink.shared.exceptions import ArbitrationError, PharmaLinkError

from pharmalink.modules.alerts.router        import router as alerts_router
from pharmalink.modules.missions.router      import router as missions_router
from pharmalink.modules.subscription.router  import router as subscription_router
from pharmalink.modules.notifications.router import router as notifications_router

configure_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PharmaLinkError)
async def pharmalink_error_handler(request: Request, exc: PharmaLinkError):
    headers = None
    if isinstance(exc, ArbitrationError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


app.include_router(alerts_router)
app.include_router(missions_router)
app.include_router(subscription_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
