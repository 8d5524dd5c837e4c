from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

# MES payload: {storageLocation: {storageType: {binName: {"GESME": qty}}}}
# plus optional top-level "materialDescription" / "error".
DESCRIPTION_KEY = "materialDescription"
ERROR_KEY = "error"
SENTINEL_KEYS = (DESCRIPTION_KEY, ERROR_KEY)
QUANTITY_FIELD = "GESME"


class LocationDecodeError(ValueError):
    """The MES payload does not have the location -> type -> bin shape."""


@dataclass(frozen=True)
class StorageBin:
    bin: str
    quantity: float

    def to_dict(self) -> dict:
        return {"bin": self.bin, "quantity": self.quantity}


@dataclass(frozen=True)
class StorageGroup:
    location: str
    type: str
    bins: list[StorageBin] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"location": self.location, "type": self.type, "bins": [b.to_dict() for b in self.bins]}


@dataclass(frozen=True)
class LocationSnapshot:
    description: Optional[str]
    groups: list[StorageGroup]
    error: Optional[str] = None

    @property
    def unavailable(self) -> bool:
        return self.error is not None


def _quantity(location: str, stype: str, bin_name: str, raw: Any) -> float:
    # bool is an int subclass; a flag is not a quantity
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise LocationDecodeError(
            f"{location}/{stype}/{bin_name}: {QUANTITY_FIELD} is not numeric ({raw!r})"
        )
    return raw


def _expect_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise LocationDecodeError(f"{where}: expected an object, got {type(value).__name__}")
    return value


def reshape_locations(payload: Any) -> LocationSnapshot:
    """Flatten an MES location map into storage groups.

    Key order of the payload is preserved. A bin counts only if it is an
    object with a quantity; (location, type) pairs with no such bin are
    dropped rather than reported with zero.
    """
    root = _expect_mapping(payload, "payload")

    err = root.get(ERROR_KEY)
    if err is not None:
        return LocationSnapshot(description=None, groups=[], error=str(err))

    description = root.get(DESCRIPTION_KEY)
    if description is not None:
        description = str(description)

    groups: list[StorageGroup] = []
    for location, types in root.items():
        if location in SENTINEL_KEYS:
            continue
        types = _expect_mapping(types, f"location {location}")
        for stype, bins in types.items():
            bins = _expect_mapping(bins, f"{location}/{stype}")
            found: list[StorageBin] = []
            for bin_name, record in bins.items():
                if not isinstance(record, Mapping) or record.get(QUANTITY_FIELD) is None:
                    continue
                found.append(StorageBin(bin=bin_name, quantity=_quantity(location, stype, bin_name, record[QUANTITY_FIELD])))
            if found:
                groups.append(StorageGroup(location=location, type=stype, bins=found))

    return LocationSnapshot(description=description, groups=groups)
