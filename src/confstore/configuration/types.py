# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.types
Request, response and event models exchanged with the configuration store
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeAlias

from pydantic import BaseModel, ConfigDict, Field


class Metadata(BaseModel):
    """Component properties handed to ``init`` by the host."""

    properties: dict[str, str] = Field(default_factory=dict)


class ConfigurationItem(BaseModel):
    """A single configuration value with its version marker and metadata."""

    model_config = ConfigDict(frozen=True)

    value: str = ""
    version: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class GetRequest(BaseModel):
    """Point lookup. Empty ``keys`` selects every row."""

    keys: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)


class GetResponse(BaseModel):
    items: dict[str, ConfigurationItem] = Field(default_factory=dict)


class SubscribeRequest(BaseModel):
    keys: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)


class UnsubscribeRequest(BaseModel):
    id: str


class UpdateEvent(BaseModel):
    """A change pushed to a subscriber; ``items`` holds the changed row."""

    id: str
    items: dict[str, ConfigurationItem] = Field(default_factory=dict)


UpdateHandler: TypeAlias = Callable[[UpdateEvent], Awaitable[None] | None]
