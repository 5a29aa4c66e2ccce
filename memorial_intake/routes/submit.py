"""
Website form submissions

POST /api/submit   enquiry or quote, dispatched on "kind" (or "type")
"""

import json
import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from memorial_intake.config import Settings
from memorial_intake.models import Submission
from memorial_intake.routes.deps import get_clock, get_integrations, get_settings
from memorial_intake.services.errors import CriticalStepFailed
from memorial_intake.services.integrations import Integrations
from memorial_intake.services.orchestrators import EnquiryOrchestrator, QuoteOrchestrator

router = APIRouter(tags=["Submissions"])
logger = logging.getLogger("submit")


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error})


@router.post("/submit")
async def submit(
    request: Request,
    settings: Settings = Depends(get_settings),
    integrations: Integrations = Depends(get_integrations),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Accept one enquiry or quote from the website.

    Checks run before any integration is touched:
    email configured (500), body is JSON (400), name/email present and,
    for enquiries, a message (400).
    """
    if integrations.email is None:
        logger.error("SENDGRID_API_KEY is not set, refusing submission")
        return error_response(500, "Server configuration error")

    raw_body = await request.body()
    try:
        payload = json.loads(raw_body)
    except ValueError:
        return error_response(400, "Invalid JSON")

    if not isinstance(payload, dict):
        return error_response(400, "Missing required fields")
    try:
        submission = Submission.model_validate(payload)
    except ValidationError as e:
        logger.info(f"Rejected submission: {e.error_count()} invalid field(s)")
        return error_response(400, "Missing required fields")
    if not submission.is_quote and not submission.message:
        return error_response(400, "Missing required fields")

    orchestrator_cls = QuoteOrchestrator if submission.is_quote else EnquiryOrchestrator
    orchestrator = orchestrator_cls(integrations, settings.business, clock=clock)
    try:
        return await orchestrator.handle(submission)
    except CriticalStepFailed as e:
        logger.error(f"Submission from {submission.email} failed at {e.step}: {e.cause}")
        return error_response(500, "Failed to send notification email")
