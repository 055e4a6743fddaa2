"""ORM model package."""

from demandplan.models.entities import Client, ClientStatus, RecurringTask, Staff

__all__ = [
    "Client",
    "ClientStatus",
    "RecurringTask",
    "Staff",
]
