"""
Security Group Allocation

Architectural Intent:
- Pure bin-packing logic for placing policy entries into security groups
  that hold a fixed number of rules per direction
- Auto-created groups are recognised by their "{ip}-auto-{n}" name; the
  sequence is re-parsed from provider names on every pass, there is no
  stored counter

Domain Logic:
- Existing auto-groups are used in ascending sequence order
- New groups needed = ceil((entries - free) / quota), never negative
- Entries fill each group to its free capacity, in input order, before the
  next group is used
"""

from __future__ import annotations
from dataclasses import dataclass
import re

DEFAULT_SECURITY_GROUP_QUOTA = 100
AUTO_GROUP_MARKER = "auto"


def auto_group_name(ip: str, index: int) -> str:
    return f"{ip}-{AUTO_GROUP_MARKER}-{index}"


def auto_created_security_groups(
    ip: str, group_names: list[str], group_ids: list[str]
) -> tuple[list[str], int]:
    """
    Select the groups auto-created for ip.

    Returns their ids sorted by sequence number and the next free sequence
    number (max + 1, or 1 when there are none).
    """
    if len(group_names) != len(group_ids):
        raise ValueError(
            f"security group names({len(group_names)}) and "
            f"ids({len(group_ids)}) differ in length"
        )

    pattern = re.compile(rf"^{re.escape(ip)}-{AUTO_GROUP_MARKER}-(\d+)$")
    numbered: list[tuple[int, str]] = []
    for name, group_id in zip(group_names, group_ids):
        m = pattern.match(name)
        if m:
            numbered.append((int(m.group(1)), group_id))

    numbered.sort(key=lambda item: item[0])
    next_index = numbered[-1][0] + 1 if numbered else 1
    return [group_id for _, group_id in numbered], next_index


def free_capacity(used: int, quota: int = DEFAULT_SECURITY_GROUP_QUOTA) -> int:
    return max(0, quota - used)


def new_group_count(
    needed: int, free_total: int, quota: int = DEFAULT_SECURITY_GROUP_QUOTA
) -> int:
    if quota <= 0:
        raise ValueError(f"security group quota must be positive, got {quota}")
    shortfall = needed - free_total
    if shortfall <= 0:
        return 0
    return (shortfall + quota - 1) // quota


@dataclass(frozen=True)
class GroupCapacity:
    group_id: str
    free: int


@dataclass(frozen=True)
class AllocationSlice:
    """Entries [start, stop) of a batch assigned to one group."""

    group_id: str
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


def pack(capacities: list[GroupCapacity], count: int) -> list[AllocationSlice]:
    """
    First-fit in order: fill each group up to its free capacity before moving
    to the next. Groups left without entries are omitted.
    """
    total = sum(max(0, c.free) for c in capacities)
    if count > total:
        raise ValueError(f"{count} entries exceed free capacity {total}")

    slices: list[AllocationSlice] = []
    offset = 0
    for capacity in capacities:
        if offset >= count:
            break
        limit = min(max(0, capacity.free), count - offset)
        if limit == 0:
            continue
        slices.append(AllocationSlice(capacity.group_id, offset, offset + limit))
        offset += limit
    return slices
