"""
Request dependencies

create_app stores settings, integrations and the clock on app.state; routes
pull them in with Depends so tests can build an app around fakes.
"""

from datetime import datetime
from typing import Callable

from fastapi import Request

from memorial_intake.config import Settings
from memorial_intake.services.integrations import Integrations


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_integrations(request: Request) -> Integrations:
    return request.app.state.integrations


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock
