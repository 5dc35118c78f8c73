# Copyright (c)
# SPDX-License-Identifier: MIT
"""Base Entity (Domain Layer).

Purpose:
    Mixin for immutable cache-domain records. Provides frozen dataclass
    semantics and an invariant hook.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BaseEntity:
    """Base mixin for domain entities.

    Concrete entities declare their own fields and override
    :meth:`__post_init__` to enforce invariants.
    """

    def __post_init__(self) -> None:
        return
