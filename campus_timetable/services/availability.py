"""
Availability ledger used during timetable generation.

Tracks, per instructor or room, which (day, time slot) cells are still free.
The ledger works on copies of the stored availability: consuming a cell never
touches the database row unless the caller writes a snapshot back.
"""

from typing import Dict, Hashable, Iterable, List, Mapping

from campus_timetable.services.exceptions import InvariantViolation


def _day_value(day) -> str:
    return getattr(day, "value", day)


class AvailabilityLedger:

    def __init__(self):
        # key -> day -> ordered free slots
        self._free: Dict[Hashable, Dict[str, List[str]]] = {}

    def register(self, key: Hashable, availability: Iterable[Mapping]) -> None:
        """
        Load an entity's availability, e.g. [{"day": "Monday", "time_slots": [...]}].
        Repeated day entries are merged; duplicate slots are ignored.
        """
        days: Dict[str, List[str]] = {}
        for item in availability or []:
            day = _day_value(item.get("day"))
            slots = days.setdefault(day, [])
            for slot in item.get("time_slots") or []:
                if slot not in slots:
                    slots.append(slot)
        self._free[key] = days

    def __contains__(self, key: Hashable) -> bool:
        return key in self._free

    def is_free(self, key: Hashable, day, slot: str) -> bool:
        return slot in self._free.get(key, {}).get(_day_value(day), ())

    def consume(self, key: Hashable, day, slot: str) -> None:
        if not self.is_free(key, day, slot):
            raise InvariantViolation(
                f"Cannot consume {_day_value(day)} {slot} for {key!r}: slot is not free"
            )
        self._free[key][_day_value(day)].remove(slot)

    def free_slots(self, key: Hashable, day) -> List[str]:
        return list(self._free.get(key, {}).get(_day_value(day), ()))

    def snapshot(self, key: Hashable) -> List[dict]:
        """Remaining availability in the stored shape, days in their original order."""
        return [
            {"day": day, "time_slots": list(slots)}
            for day, slots in self._free.get(key, {}).items()
        ]
