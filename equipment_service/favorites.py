from abc import ABC, abstractmethod
from typing import Dict, List, Set


class FavoritesStore(ABC):
    """Per-user set of favored equipment ids, kept outside the relational store."""

    @abstractmethod
    async def list(self, user_id: int) -> List[str]: ...

    @abstractmethod
    async def contains(self, user_id: int, equipment_id: str) -> bool: ...

    @abstractmethod
    async def add(self, user_id: int, equipment_id: str) -> None: ...

    @abstractmethod
    async def remove(self, user_id: int, equipment_id: str) -> None: ...

    async def toggle(self, user_id: int, equipment_id: str) -> bool:
        """Flip membership and return whether the item is now a favorite."""
        if await self.contains(user_id, equipment_id):
            await self.remove(user_id, equipment_id)
            return False
        await self.add(user_id, equipment_id)
        return True


def favorites_key(user_id: int) -> str:
    return f"favorites:{user_id}"


class RedisFavoritesStore(FavoritesStore):
    def __init__(self, redis):
        self.redis = redis

    async def list(self, user_id):
        members = await self.redis.smembers(favorites_key(user_id))
        return sorted(members)

    async def contains(self, user_id, equipment_id):
        return bool(await self.redis.sismember(favorites_key(user_id), equipment_id))

    async def add(self, user_id, equipment_id):
        await self.redis.sadd(favorites_key(user_id), equipment_id)

    async def remove(self, user_id, equipment_id):
        await self.redis.srem(favorites_key(user_id), equipment_id)


class MemoryFavoritesStore(FavoritesStore):
    def __init__(self):
        self._sets: Dict[int, Set[str]] = {}

    async def list(self, user_id):
        return sorted(self._sets.get(user_id, set()))

    async def contains(self, user_id, equipment_id):
        return equipment_id in self._sets.get(user_id, set())

    async def add(self, user_id, equipment_id):
        self._sets.setdefault(user_id, set()).add(equipment_id)

    async def remove(self, user_id, equipment_id):
        self._sets.get(user_id, set()).discard(equipment_id)
