import httpx
import logging
from typing import Optional

from pharmacy_orders.domain.models import Pharmacy
from pharmacy_orders.domain.exceptions import PharmacyDirectoryError
from pharmacy_orders.application.interfaces import PharmacyDirectory

logger = logging.getLogger(__name__)


class HTTPPharmacyDirectory(PharmacyDirectory):
    def __init__(self, base_url: str, api_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url
        self._api_token = api_token
        self._transport = transport

    async def get_pharmacy(self, pharmacy_id: str) -> Optional[Pharmacy]:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self._base_url}/api/pharmacies/{pharmacy_id}",
                    headers={"X-API-Key": self._api_token},
                    timeout=10.0
                )

                if response.status_code == 200:
                    try:
                        data = response.json()
                        return Pharmacy(
                            id=str(data.get("id", pharmacy_id)),
                            name=data["name"],
                            is_active=data.get("is_active", True)
                        )
                    except (ValueError, KeyError, TypeError, AttributeError) as e:
                        logger.error(f"Malformed pharmacy directory response for {pharmacy_id}: {e}")
                        raise PharmacyDirectoryError(f"Malformed pharmacy directory response: {e}")
                elif response.status_code == 404:
                    return None
                else:
                    raise PharmacyDirectoryError(f"Pharmacy directory error: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Pharmacy directory connection error: {e}")
            raise PharmacyDirectoryError(f"Pharmacy directory unavailable: {str(e)}")
