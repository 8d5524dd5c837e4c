from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from services.dashboard.cards import CardState
from services.dashboard.sources import CustomerPartSource, LocationSource, RequestSource
from services.dashboard.timing import utcnow
from services.material_requests.service import MaterialRequestRecord

logger = logging.getLogger(__name__)


def filter_by_types(requests: Sequence[MaterialRequestRecord], types: Optional[Iterable[str]]) -> list[MaterialRequestRecord]:
    """Keep requests whose type is selected. An empty selection keeps everything."""
    # "?types=" arrives as [""]; blank entries are not a selection
    wanted = {t for t in (types or ()) if t and t.strip()}
    if not wanted:
        return list(requests)
    return [r for r in requests if r.type in wanted]


def group_by_area(requests: Sequence[MaterialRequestRecord]) -> list[tuple[str, list[MaterialRequestRecord]]]:
    # areas sorted; fetch order (newest first) kept inside each area
    groups: dict[str, list[MaterialRequestRecord]] = {}
    for r in requests:
        groups.setdefault(r.area, []).append(r)
    return sorted(groups.items(), key=lambda kv: kv[0])


class Dashboard:
    """Holds the active request set and one CardState per request.

    Only the poll loop replaces `requests`; cards own their lookup state.
    """

    def __init__(self, source: RequestSource, parts: CustomerPartSource, locations: LocationSource) -> None:
        self.source = source
        self.parts = parts
        self.locations = locations
        self.requests: list[MaterialRequestRecord] = []
        self.cards: dict[str, CardState] = {}
        self.connected = False
        self.loaded = False
        self.last_error: Optional[str] = None
        self.last_polled_at: Optional[datetime] = None

    async def poll_once(self) -> bool:
        try:
            fresh = await self.source.fetch_active()
        except Exception as e:
            if self.connected or not self.loaded:
                logger.warning("material request fetch failed: %s", e)
            self.connected = False
            self.last_error = str(e) or type(e).__name__
            return False

        if not self.connected and self.loaded:
            logger.info("material request source reachable again")
        self._replace(fresh)
        self.connected = True
        self.loaded = True
        self.last_error = None
        self.last_polled_at = utcnow()
        return True

    def _replace(self, fresh: Iterable[MaterialRequestRecord]) -> None:
        now = utcnow()
        requests: list[MaterialRequestRecord] = []
        seen: set[str] = set()
        for r in fresh:
            if r.id in seen:
                continue
            seen.add(r.id)
            requests.append(r)
            card = self.cards.get(r.id)
            if card is None:
                card = CardState(r, self.parts, self.locations)
                self.cards[r.id] = card
                card.start()
                card.tick(now)
            else:
                card.update(r)

        for rid in [rid for rid in self.cards if rid not in seen]:
            self.cards.pop(rid).close()

        self.requests = requests

    def tick(self, now: Optional[datetime] = None) -> None:
        # one clock read per tick, shared by every card
        if now is None:
            now = utcnow()
        for card in self.cards.values():
            card.tick(now)

    async def run_forever(self, *, poll_interval_seconds: float = 1.0) -> None:
        """Poll on a fixed interval until cancelled.

        A failing iteration is logged and the loop carries on; only
        cancellation stops it.
        """
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("dashboard poll iteration failed")
            await asyncio.sleep(poll_interval_seconds)

    async def run_ticker(self, *, tick_interval_seconds: float = 1.0) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("dashboard tick failed")
            await asyncio.sleep(tick_interval_seconds)

    def close(self) -> None:
        for card in self.cards.values():
            card.close()
        self.cards.clear()

    def snapshot(self, types: Optional[Iterable[str]] = None) -> dict:
        visible = filter_by_types(self.requests, types)
        areas = []
        for area, rows in group_by_area(visible):
            areas.append({
                "area": area,
                "count": len(rows),
                "cards": [self.cards[r.id].view() for r in rows],
            })
        return {
            "connected": self.connected,
            "loading": not self.loaded,
            "error": self.last_error,
            "lastPolledAt": self.last_polled_at.isoformat() if self.last_polled_at else None,
            "total": len(visible),
            "areas": areas,
        }
