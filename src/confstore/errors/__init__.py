# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore

"""
Error handling foundation for confstore.
"""

from __future__ import annotations

from confstore.errors.base import (
    ConfStoreError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
)
from confstore.errors.registry import registry

__all__ = [
    "ErrorCode",
    "ErrorCategory",
    "ErrorSeverity",
    "ConfStoreError",
    "registry",
]
