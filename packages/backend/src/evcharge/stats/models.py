"""Pydantic schemas for the cached dashboard stats."""

from typing import Union

from pydantic import BaseModel


class StatMetric(BaseModel):
    id: str
    name: str
    value: Union[int, float]
    change: float = 0  # trend vs previous period; not tracked yet
    color: str
    icon: str


def build_metrics(users: int, stations: int, locations: int, revenue: float) -> list[StatMetric]:
    """Assemble the snapshot in dashboard display order."""
    return [
        StatMetric(id="1", name="Users", value=users,
                   color="from-[#8B5CF6] to-[#10B981]", icon="user-group"),
        StatMetric(id="2", name="Stations", value=stations,
                   color="from-[#10B981] to-[#059669]", icon="lightning-bolt"),
        StatMetric(id="3", name="Locations", value=locations,
                   color="from-[#F59E0B] to-[#D97706]", icon="clock"),
        StatMetric(id="4", name="Revenue", value=revenue,
                   color="from-[#EF4444] to-[#DC2626]", icon="currency-rupee"),
    ]
