"""
Sears Melvin Memorials - intake API

Start with:
    uvicorn memorial_intake.server:app --host 0.0.0.0 --port 8001 --reload
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memorial_intake import __version__
from memorial_intake.config import Settings, now_utc
from memorial_intake.routes import config, payments, submit
from memorial_intake.services.integrations import Integrations

logger = logging.getLogger("memorial_intake")


def create_app(settings: Optional[Settings] = None, integrations: Optional[Integrations] = None,
               clock: Callable[[], datetime] = now_utc) -> FastAPI:
    settings = settings or Settings.from_env()
    integrations = integrations or Integrations.from_settings(settings)

    # Configuration logging
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title="Sears Melvin Memorials Intake",
        description="Website enquiries, quote requests and Stripe deposits",
        version=__version__,
    )
    app.state.settings = settings
    app.state.integrations = integrations
    app.state.clock = clock

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # ==================== ROUTES ====================

    app.include_router(submit.router, prefix="/api")
    app.include_router(config.router, prefix="/api")
    app.include_router(payments.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.business.name,
            "version": __version__,
            "status": "running",
        }

    configured = [
        label for label, present in (
            ("email", integrations.email),
            ("clickup", integrations.tasks),
            ("supabase", integrations.records),
            ("ghl", integrations.crm),
            ("stripe", integrations.invoices),
        ) if present is not None
    ]
    logger.info(f"Intake API ready, integrations: {', '.join(configured) or 'none'}")
    if integrations.email is None:
        logger.warning("SENDGRID_API_KEY not set: every submission will be refused")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
