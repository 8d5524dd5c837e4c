from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from services.dashboard.locations import LocationSnapshot, reshape_locations
from services.dashboard.sources import CustomerPartSource, LocationSource
from services.dashboard.timing import ElapsedReading, TimestampError, measure
from services.material_requests.service import MaterialRequestRecord

logger = logging.getLogger(__name__)

LOADING = "loading"
FOUND = "found"
ABSENT = "absent"
UNAVAILABLE = "unavailable"

LOADING_TEXT = "Cargando..."
PART_ABSENT_TEXT = "No encontrado"
PART_UNAVAILABLE_TEXT = "No disponible"
NO_LOCATIONS_TEXT = "Sin ubicaciones"
ELAPSED_UNAVAILABLE_TEXT = "--"


class Lookup:
    """State of one asynchronous lookup on a card.

    Every fetch is issued under a new generation number; a result is only
    applied if its generation is still the current one.
    """

    def __init__(self) -> None:
        self.status = LOADING
        self.value: Any = None
        self.generation = 0
        self.task: Optional[asyncio.Task] = None

    def begin(self) -> int:
        self.generation += 1
        if self.task is not None and not self.task.done():
            self.task.cancel()
        self.task = None
        self.status = LOADING
        self.value = None
        return self.generation

    def settle(self, generation: int, status: str, value: Any = None) -> bool:
        if generation != self.generation:
            return False
        self.status = status
        self.value = value
        return True

    def cancel(self) -> None:
        # bump so any result already on its way is dropped
        self.generation += 1
        if self.task is not None and not self.task.done():
            self.task.cancel()


class CardState:
    """Derived, card-local state for one displayed material request."""

    def __init__(self, record: MaterialRequestRecord, parts: CustomerPartSource, locations: LocationSource) -> None:
        self.record = record
        self.sap = record.sap_material
        self._parts = parts
        self._locations = locations
        self.part = Lookup()
        self.locations = Lookup()
        self.reading: Optional[ElapsedReading] = None

    def start(self) -> None:
        self._refresh()

    def update(self, record: MaterialRequestRecord) -> None:
        self.record = record
        if record.sap_material != self.sap:
            logger.debug("card %s: SAP %s -> %s, refetching", record.id, self.sap, record.sap_material)
            self.sap = record.sap_material
            self._refresh()

    def close(self) -> None:
        self.part.cancel()
        self.locations.cancel()

    async def settled(self) -> None:
        tasks = [t for t in (self.part.task, self.locations.task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _refresh(self) -> None:
        sap = self.sap
        part_gen = self.part.begin()
        loc_gen = self.locations.begin()
        self.part.task = asyncio.create_task(self._load_part(sap, part_gen))
        self.locations.task = asyncio.create_task(self._load_locations(sap, loc_gen))

    async def _load_part(self, sap: str, generation: int) -> None:
        try:
            part = await self._parts.lookup(sap)
        except Exception as e:
            logger.warning("customer part lookup failed for %s: %s", sap, e)
            self.part.settle(generation, UNAVAILABLE)
            return
        self.part.settle(generation, FOUND if part else ABSENT, part or None)

    async def _load_locations(self, sap: str, generation: int) -> None:
        try:
            payload = await self._locations.lookup(sap)
            snapshot = reshape_locations(payload)
        except Exception as e:
            logger.warning("location lookup failed for %s: %s", sap, e)
            self.locations.settle(generation, UNAVAILABLE)
            return
        if snapshot.unavailable:
            logger.info("MES reported an error for %s: %s", sap, snapshot.error)
            self.locations.settle(generation, UNAVAILABLE, snapshot)
        elif snapshot.groups:
            self.locations.settle(generation, FOUND, snapshot)
        else:
            self.locations.settle(generation, ABSENT, snapshot)

    def tick(self, now: datetime) -> None:
        try:
            self.reading = measure(self.record.request_time, now)
        except TimestampError as e:
            logger.warning("request %s: %s", self.record.id, e)
            self.reading = None

    # ---- view-model ----

    def _part_text(self) -> Optional[str]:
        if self.part.status == LOADING:
            return LOADING_TEXT
        if self.part.status == FOUND:
            return self.part.value
        if self.part.status == ABSENT:
            return PART_ABSENT_TEXT
        return PART_UNAVAILABLE_TEXT

    def view(self) -> dict:
        snapshot: Optional[LocationSnapshot] = self.locations.value
        description = snapshot.description if snapshot is not None else None
        groups = snapshot.groups if snapshot is not None else []
        if self.locations.status == LOADING:
            location_text = LOADING_TEXT
        elif self.locations.status == FOUND:
            location_text = None
        else:
            location_text = NO_LOCATIONS_TEXT
        r = self.record
        return {
            "id": r.id,
            "stationName": r.station_name,
            "area": r.area,
            "type": r.type,
            "sapMaterial": r.sap_material,
            "materialDescription": description,
            "materialLabel": f"{description} - {r.sap_material}" if description else r.sap_material,
            "customerPart": self.part.value if self.part.status == FOUND else None,
            "customerPartStatus": self.part.status,
            "customerPartText": self._part_text(),
            "storageGroups": [g.to_dict() for g in groups],
            "locationStatus": self.locations.status,
            "locationText": location_text,
            "quantity": r.quantity,
            "elapsedText": self.reading.text if self.reading else ELAPSED_UNAVAILABLE_TEXT,
            "urgencyBand": self.reading.band if self.reading else None,
        }
