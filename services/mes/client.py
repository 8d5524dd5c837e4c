from __future__ import annotations
import logging
from typing import Any, Optional

import httpx

from app.core.config import MES_API_ADDRESS, MES_API_PORT, PLANT_CODE

logger = logging.getLogger(__name__)


class MesClient:
    """Thin wrapper over the MES material search endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        plant: str = PLANT_CODE,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url or f"http://{MES_API_ADDRESS}:{MES_API_PORT}"
        self.plant = plant
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url)
        return self._client

    async def search_material(self, sap_material: str) -> Any:
        resp = await self.client.post(
            "/MESMaterialSearch",
            json={"plant": self.plant, "material": sap_material},
        )
        resp.raise_for_status()
        data = resp.json()
        logger.debug("MESMaterialSearch %s -> %s", sap_material, data)
        return data

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


_mes_client: Optional[MesClient] = None

def get_mes_client() -> MesClient:
    global _mes_client
    if _mes_client is None:
        _mes_client = MesClient()
    return _mes_client

async def close_mes_client() -> None:
    global _mes_client
    if _mes_client is not None:
        await _mes_client.aclose()
        _mes_client = None
