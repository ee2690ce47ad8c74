from datetime import date
from typing import Optional

from pydantic import BaseModel, field_validator

from models.order import OrderStatus


class OrderUpdateRequest(BaseModel):
    """Admin order edit. Omitted keys are left alone; explicit nulls clear tracking fields."""

    status: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[date] = None
    notify: bool = False
    notify_async: bool = False

    @field_validator("status")
    @classmethod
    def _known_status(cls, v):
        if v is None:
            return v
        if v not in OrderStatus.values():
            raise ValueError(f"status must be one of {', '.join(OrderStatus.values())}")
        return v


class NotifyRequest(BaseModel):
    status: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[date] = None
    notify_async: bool = False

    @field_validator("status")
    @classmethod
    def _known_status(cls, v):
        if v is not None and v not in OrderStatus.values():
            raise ValueError(f"status must be one of {', '.join(OrderStatus.values())}")
        return v
