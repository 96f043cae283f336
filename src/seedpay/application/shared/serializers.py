"""Shared Pydantic serializers used across DTOs."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import field_serializer


class DatetimeSerializerMixin:
    """Serialize common datetime fields consistently."""

    @field_serializer("created_at", "expires_at", check_fields=False)
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()

    @field_serializer("updated_at", check_fields=False)
    def serialize_updated_at(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None


class CommonSerializersMixin(DatetimeSerializerMixin):
    """Common field serializers shared across response DTOs.

    Uses `check_fields=False` so the mixin can be used by models that don't
    declare all fields.
    """

    @field_serializer("id", "payment_id", check_fields=False)
    def serialize_id(self, value: Optional[UUID]) -> Optional[str]:
        return str(value) if value else None
