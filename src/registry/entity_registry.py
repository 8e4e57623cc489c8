"""
Entity Registry - static list of tracked hotels.

Loaded once at process start from config/entities.py.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entity:
    """
    A tracked hotel.
    table_id names the hotel's review table; analysis tables derive from it.
    """
    id: str
    name: str
    partner_id: str
    table_id: str

    @classmethod
    def from_dict(cls, data: dict) -> "Entity":
        return cls(
            id=data["id"],
            name=data["name"],
            partner_id=str(data["partner_id"]),
            table_id=data.get("table_id") or data["name"],
        )

    @property
    def analysis_table_id(self) -> str:
        return f"{self.table_id}_analysis"


class EntityRegistry:
    """
    Immutable set of tracked hotels, keyed by name.
    """

    def __init__(self, entities: List[Entity]):
        self._entities: Dict[str, Entity] = {}
        for entity in entities:
            if entity.name in self._entities:
                raise ValueError(f"Duplicate hotel name: {entity.name}")
            self._entities[entity.name] = entity

        logger.debug(f"Loaded {len(self._entities)} hotels into registry")

    @classmethod
    def from_config(cls, raw_entities: List[dict]) -> "EntityRegistry":
        """Build registry from the static config list."""
        return cls([Entity.from_dict(item) for item in raw_entities])

    def all(self) -> List[Entity]:
        return list(self._entities.values())

    def get(self, name: str) -> Optional[Entity]:
        """Exact (case-sensitive) lookup by hotel name."""
        return self._entities.get(name)

    def select(self, name: Optional[str] = None) -> List[Entity]:
        """
        Hotels to process for an optional name filter.

        Returns every hotel when name is None and an empty list when the
        name is unknown.
        """
        if name is None:
            return self.all()
        entity = self.get(name)
        return [entity] if entity else []

    def __len__(self) -> int:
        return len(self._entities)
