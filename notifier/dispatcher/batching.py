"""Grouping of a fetched batch into transport calls."""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from notifier.domain.categories import CategoryRegistry
from notifier.domain.models import QueuedMessage


@dataclass
class DispatchUnit:
    """Messages that go to the transport in one call.

    ``bulk`` units hold two or more messages of one batchable category and
    use ``send_bulk``; every other unit holds a single message.
    """

    category: str
    messages: List[QueuedMessage] = field(default_factory=list)
    bulk: bool = False

    def __len__(self) -> int:
        return len(self.messages)


def plan_units(messages: Sequence[QueuedMessage], registry: CategoryRegistry) -> List[DispatchUnit]:
    """Partition ``messages`` into dispatch units.

    Batchable categories are grouped per category, positioned where their
    first message appears; every other message becomes its own unit. The
    input's priority order is therefore preserved between units.
    """
    units: List[DispatchUnit] = []
    groups: Dict[str, DispatchUnit] = {}

    for message in messages:
        if registry.get(message.type).batchable:
            unit = groups.get(message.type)
            if unit is None:
                unit = DispatchUnit(category=message.type)
                groups[message.type] = unit
                units.append(unit)
            unit.messages.append(message)
        else:
            units.append(DispatchUnit(category=message.type, messages=[message]))

    for unit in groups.values():
        unit.bulk = len(unit.messages) > 1
    return units
