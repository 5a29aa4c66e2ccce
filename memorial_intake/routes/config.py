"""
Publishable configuration for the website (Stripe card form, Maps autocomplete).
"""

from fastapi import APIRouter, Depends

from memorial_intake.config import Settings
from memorial_intake.routes.deps import get_settings

router = APIRouter(tags=["Config"])


@router.get("/config")
async def get_public_config(settings: Settings = Depends(get_settings)):
    return {
        "stripePublishableKey": settings.stripe_publishable_key,
        "googleMapsKey": settings.google_maps_key,
    }
