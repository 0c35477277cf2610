# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.decoder
Decoding of NOTIFY payloads into update events

Triggers on the configuration table are expected to publish the changed row
wrapped in a ``data`` object::

    {"data": {"key": "...", "value": "...", "version": "...", "metadata": {...}}}

Field names inside ``data`` are matched case-insensitively.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, model_validator

from confstore.configuration.errors import NotificationDecodeError
from confstore.configuration.types import ConfigurationItem, UpdateEvent


class NotificationRow(BaseModel):
    """The row carried in a notification's ``data`` object."""

    model_config = ConfigDict(extra="ignore")

    key: StrictStr = ""
    value: StrictStr = ""
    version: StrictStr = ""
    metadata: dict[StrictStr, StrictStr] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def normalize_field_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                (k.lower() if isinstance(k, str) else k): v for k, v in data.items()
            }
        return data

    def to_item(self) -> ConfigurationItem:
        return ConfigurationItem(
            value=self.value, version=self.version, metadata=dict(self.metadata)
        )


def decode_notification(
    payload: str | bytes, subscription_id: str
) -> UpdateEvent | None:
    """Decode a raw notification body into an ``UpdateEvent``.

    Returns ``None`` when the payload has no ``data`` object to deliver.

    Raises:
        NotificationDecodeError: If the body is not a JSON object or the row
            has wrongly typed fields.
    """
    try:
        document = json.loads(payload)
    except (TypeError, ValueError, RecursionError) as exc:
        raise NotificationDecodeError(
            f"notification payload is not valid JSON: {exc}",
            subscription_id=subscription_id,
        ) from exc

    if not isinstance(document, dict):
        raise NotificationDecodeError(
            "notification payload is not a JSON object",
            subscription_id=subscription_id,
        )

    data = document.get("data")
    if not isinstance(data, dict):
        return None

    try:
        row = NotificationRow.model_validate(data)
    except ValidationError as exc:
        raise NotificationDecodeError(
            f"malformed notification row: {exc.error_count()} invalid field(s)",
            subscription_id=subscription_id,
            errors=[
                {"loc": list(map(str, err["loc"])), "msg": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc

    return UpdateEvent(id=subscription_id, items={row.key: row.to_item()})
