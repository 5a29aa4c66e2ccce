"""
ClickUp task creation

Format API ClickUp:
- Endpoint: POST /api/v2/list/{list_id}/task
- Auth: Header Authorization: {token}
- Body: JSON with name, description
"""

import logging
from typing import Optional

import httpx

from memorial_intake.services.errors import TaskCreationFailed

logger = logging.getLogger("task_board")

CLICKUP_API_URL = "https://api.clickup.com/api/v2"


class TaskCreator:

    def __init__(self, api_key: str, base_url: str = CLICKUP_API_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def create_task(self, title: str, description: str, list_id: str) -> str:
        """Create a task in the given list and return its ClickUp id."""
        if not title:
            raise TaskCreationFailed("task title is required")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/list/{list_id}/task",
                    json={"name": title, "description": description},
                    headers={
                        "Authorization": self.api_key,
                        "Content-Type": "application/json"
                    }
                )
        except httpx.HTTPError as e:
            logger.warning(f"ClickUp unreachable: {e}")
            raise TaskCreationFailed(f"{type(e).__name__}: {e}") from e

        if resp.is_error:
            logger.warning(f"ClickUp rejected task {resp.status_code}: {resp.text}")
            raise TaskCreationFailed(f"{resp.status_code}: {resp.text}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        task_id = str(body.get("id") or "") if isinstance(body, dict) else ""
        logger.info(f"ClickUp task created: {task_id or '(no id)'} in list {list_id}")
        return task_id
