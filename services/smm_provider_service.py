"""SMM Provider API Service - order creation and status queries"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from config import Config

logger = logging.getLogger(__name__)


@dataclass
class ProviderOrder:
    """Normalized order-creation response"""
    order_id: str
    status: Optional[str] = None


@dataclass
class ProviderOrderStatus:
    """Normalized status response - raw provider text"""
    status: str
    remains: Optional[str] = None
    charge: Optional[str] = None


class SMMProviderService:
    """
    Client for the SMM panel API (v2 style: form-encoded POST with `key` and
    `action` fields).

    Both operations fail soft: transport errors, non-JSON bodies and provider
    error payloads all come back as None.
    """

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[int] = None):
        self.api_url = api_url or Config.SMM_API_URL
        self.api_key = api_key if api_key is not None else Config.SMM_API_KEY
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.SMM_API_TIMEOUT)

        if not self.api_key:
            logger.warning("SMM_API_KEY not configured - provider requests will be rejected")

    async def _post(self, payload: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """POST form data and decode the JSON body"""
        data = {"key": self.api_key, **payload}
        action = payload.get("action")
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.api_url, data=data) as response:
                    body = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error(f"❌ SMM_PROVIDER_HTTP_ERROR: action={action}: {e}")
            return None
        except asyncio.TimeoutError as e:
            logger.error(f"❌ SMM_PROVIDER_TIMEOUT: action={action}: {e}")
            return None
        except ValueError as e:
            logger.error(f"❌ SMM_PROVIDER_BAD_JSON: action={action}: {e}")
            return None

        if not isinstance(body, dict):
            logger.error(f"❌ SMM_PROVIDER_BAD_PAYLOAD: action={action}: {body!r}")
            return None
        if body.get("error"):
            logger.warning(f"⚠️ SMM_PROVIDER_REJECTED: action={action}: {body.get('error')}")
            return None
        return body

    async def create_order(self, service_id: int, link: str, quantity: int) -> Optional[ProviderOrder]:
        """Place an order; None unless the provider returns an order id"""
        body = await self._post({
            "action": "add",
            "service": str(service_id),
            "link": link,
            "quantity": str(quantity),
        })
        if body is None:
            return None

        order_id = body.get("order") or body.get("id")
        if not order_id:
            logger.error(f"❌ SMM_PROVIDER_NO_ORDER_ID: response={body!r}")
            return None

        logger.info(f"✅ SMM_PROVIDER_ORDER_CREATED: provider order {order_id} (service {service_id}, qty {quantity})")
        return ProviderOrder(order_id=str(order_id), status=body.get("status"))

    async def get_order_status(self, order_id: str) -> Optional[ProviderOrderStatus]:
        """Query an order's status; None if the response has no status text"""
        body = await self._post({"action": "status", "order": str(order_id)})
        if body is None:
            return None

        status = body.get("status") or body.get("result")
        if not status:
            logger.warning(f"⚠️ SMM_PROVIDER_NO_STATUS: order {order_id}: {body!r}")
            return None

        remains = body.get("remains")
        charge = body.get("charge")
        return ProviderOrderStatus(
            status=str(status),
            remains=None if remains is None else str(remains),
            charge=None if charge is None else str(charge),
        )


smm_provider_service = SMMProviderService()
