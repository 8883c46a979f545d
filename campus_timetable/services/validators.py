"""
Constraint validators for timetables.
Checks a stored timetable for instructor and room double-bookings, which can
appear after manual entry edits.
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from campus_timetable.models.models import Timetable


class ConstraintValidator:

    def __init__(self, timetable: Timetable):
        self.timetable = timetable

    def _cells(self) -> Dict[Tuple[str, str], list]:
        cells = defaultdict(list)
        for schedule_day in self.timetable.schedule:
            for entry in schedule_day.classes:
                cells[(schedule_day.day.value, entry.time_slot)].append(entry)
        return cells

    def instructor_conflicts(self) -> List[str]:
        conflicts = []
        for (day, slot), entries in self._cells().items():
            counts = defaultdict(int)
            for entry in entries:
                counts[entry.instructor_name] += 1
            for name, count in counts.items():
                if count > 1:
                    conflicts.append(f"Instructor conflict on {day} {slot}: {name} booked {count} times")
        return conflicts

    def room_conflicts(self) -> List[str]:
        conflicts = []
        for (day, slot), entries in self._cells().items():
            counts = defaultdict(int)
            for entry in entries:
                counts[entry.room_number] += 1
            for number, count in counts.items():
                if count > 1:
                    conflicts.append(f"Room conflict on {day} {slot}: {number} booked {count} times")
        return conflicts

    def validate_full_schedule(self):
        conflicts = self.instructor_conflicts() + self.room_conflicts()
        unique_conflicts = sorted(set(conflicts))
        return len(unique_conflicts) == 0, unique_conflicts
