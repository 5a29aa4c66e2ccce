"""
GoHighLevel contact upsert

Format API LeadConnector:
- Endpoint: POST /contacts/upsert
- Auth: Header Authorization: Bearer {token}, Version: 2021-07-28
- Body: JSON with locationId, firstName, lastName, email, phone, tags, customFields
"""

import logging
from typing import Dict, List, Optional

import httpx

from memorial_intake.services.errors import CrmUpsertFailed

logger = logging.getLogger("crm")

GHL_API_URL = "https://services.leadconnectorhq.com"
GHL_API_VERSION = "2021-07-28"


class CrmContacts:

    def __init__(self, api_key: str, location_id: str, base_url: str = GHL_API_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.location_id = location_id
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def upsert_contact(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        tags: Optional[List[str]] = None,
        custom_fields: Optional[List[Dict[str, str]]] = None,
    ) -> str:
        """
        Create or update the contact matching this email.

        custom_fields: [{"key": "memorial_product", "field_value": "..."}]
        Returns the GoHighLevel contact id.
        """
        if not email:
            raise CrmUpsertFailed(None, "email is required")

        parts = name.strip().split(" ")
        payload = {
            "locationId": self.location_id,
            "firstName": parts[0],
            "lastName": " ".join(parts[1:]),
            "email": email,
            "source": "Website",
            "tags": tags or [],
            "customFields": custom_fields or [],
        }
        if phone:
            payload["phone"] = phone

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/contacts/upsert",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Version": GHL_API_VERSION,
                        "Content-Type": "application/json"
                    }
                )
        except httpx.HTTPError as e:
            logger.warning(f"GHL unreachable: {e}")
            raise CrmUpsertFailed(None, f"{type(e).__name__}: {e}") from e

        if resp.is_error:
            logger.warning(f"GHL rejected contact {resp.status_code}: {resp.text}")
            raise CrmUpsertFailed(resp.status_code, resp.text)

        try:
            body = resp.json()
        except ValueError:
            body = {}
        contact = body.get("contact") if isinstance(body, dict) else None
        contact_id = str(contact.get("id") or "") if isinstance(contact, dict) else ""
        logger.info(f"GHL contact upserted: {contact_id or '(no id)'}")
        return contact_id
