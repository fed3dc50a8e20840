# Copyright (c) 2026 Dedalus Labs, Inc. and its contributors
# SPDX-License-Identifier: MIT

"""Lookup of stored API keys by id."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .models import ApiKeyEntity


class ApiKeyEntityRepository(Protocol):
    def find_by_key_id(self, key_id: str) -> ApiKeyEntity | None:
        """Return the entity for ``key_id``, or ``None`` when unknown."""


class InMemoryApiKeyEntityRepository:
    """Dictionary-backed repository, populated at startup."""

    def __init__(self, entities: Iterable[ApiKeyEntity] = ()) -> None:
        self._entities: dict[str, ApiKeyEntity] = {entity.id: entity for entity in entities}

    def find_by_key_id(self, key_id: str) -> ApiKeyEntity | None:
        return self._entities.get(key_id)

    def add_api_key(self, entity: ApiKeyEntity) -> None:
        self._entities[entity.id] = entity

    def remove_api_key(self, key_id: str) -> None:
        self._entities.pop(key_id, None)

    def contains_api_key(self, key_id: str) -> bool:
        return key_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)


__all__ = ["ApiKeyEntityRepository", "InMemoryApiKeyEntityRepository"]
