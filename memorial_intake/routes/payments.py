"""
Stripe routes

POST /api/stripe           create the deposit PaymentIntent for the card form
POST /api/stripe-webhook   payment callbacks (payment_intent.succeeded)
"""

import json
import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from memorial_intake.config import Settings
from memorial_intake.models import DepositIntentRequest
from memorial_intake.routes.deps import get_clock, get_integrations, get_settings
from memorial_intake.services.errors import InvoiceIssuanceFailed, WebhookRejected
from memorial_intake.services.integrations import Integrations
from memorial_intake.services.money import parse_amount, to_minor_units
from memorial_intake.services.payment_confirmation import PaymentConfirmationHandler

router = APIRouter(tags=["Stripe"])
logger = logging.getLogger("stripe_routes")


# ==================== DEPOSIT INTENT ====================

@router.post("/stripe")
async def create_deposit_intent(request: Request, integrations: Integrations = Depends(get_integrations)):
    if integrations.invoices is None:
        return JSONResponse(status_code=500, content={"error": "Stripe not configured"})

    try:
        deposit = DepositIntentRequest.model_validate(json.loads(await request.body()))
    except (ValueError, ValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    amount = parse_amount(deposit.amount)
    if amount is None or to_minor_units(amount) <= 0:
        return JSONResponse(status_code=400, content={"error": "Invalid amount"})

    metadata = {
        "customer_name": deposit.name,
        "customer_email": deposit.email,
        "cemetery": deposit.cemetery,
        "product": deposit.product,
        "invoice_id": deposit.invoice_id,
    }
    description = f"50% deposit — {deposit.product or 'Memorial'} — {deposit.name}"

    try:
        client_secret = await integrations.invoices.create_deposit_intent(
            to_minor_units(amount), metadata, description,
        )
    except InvoiceIssuanceFailed as e:
        return JSONResponse(status_code=400, content={"error": e.provider_message})

    logger.info(f"Deposit intent created for {deposit.email or '(no email)'}: £{amount}")
    return {"clientSecret": client_secret}


# ==================== WEBHOOK ====================

@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    integrations: Integrations = Depends(get_integrations),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    handler = PaymentConfirmationHandler(
        integrations, settings.business, settings.stripe_webhook_secret, clock=clock,
    )
    try:
        await handler.handle(await request.body(), request.headers.get("stripe-signature"))
    except WebhookRejected as e:
        return JSONResponse(status_code=400, content={"error": e.reason})
    return {"received": True}
