"""Users and their saved locations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from itertools import count
from typing import Protocol

import structlog

from weatherview.api.schemas import (
    SavedLocation,
    SavedLocationCreate,
    SavedLocationUpdate,
    User,
)
from weatherview.errors import NotFoundError, StorageError, ValidationError, WeatherAppError
from weatherview.services.clock import Clock, utc_now

logger = structlog.get_logger()


class UserRepository(Protocol):
    """Persistence port for users and saved locations."""

    def add_user(self, user: User) -> None: ...

    def get_user(self, user_id: int) -> User | None: ...

    def find_user(self, username: str) -> User | None: ...

    def next_user_id(self) -> int: ...

    def next_location_id(self) -> int: ...

    def list_locations(self, user_id: int) -> list[SavedLocation]: ...

    def get_location(self, location_id: int) -> SavedLocation | None: ...

    def save_location(self, location: SavedLocation) -> None: ...

    def delete_location(self, location_id: int) -> bool: ...


class InMemoryUserRepository:
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._locations: dict[int, SavedLocation] = {}
        self._user_ids = count(1)
        self._location_ids = count(1)

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

    def get_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def find_user(self, username: str) -> User | None:
        return next((u for u in self._users.values() if u.username == username), None)

    def next_user_id(self) -> int:
        return next(self._user_ids)

    def next_location_id(self) -> int:
        return next(self._location_ids)

    def list_locations(self, user_id: int) -> list[SavedLocation]:
        return [loc for loc in self._locations.values() if loc.userId == user_id]

    def get_location(self, location_id: int) -> SavedLocation | None:
        return self._locations.get(location_id)

    def save_location(self, location: SavedLocation) -> None:
        self._locations[location.id] = location

    def delete_location(self, location_id: int) -> bool:
        return self._locations.pop(location_id, None) is not None


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate unexpected repository failures into StorageError."""
    try:
        yield
    except WeatherAppError:
        raise
    except Exception as e:
        logger.error("User repository failure", operation=operation, error=str(e))
        raise StorageError("Storage operation failed") from e


class UserService:
    """User and saved-location management.

    A user has at most one default location; marking a location as default
    clears the flag on every other location of that user first.
    """

    def __init__(self, repository: UserRepository, clock: Clock = utc_now) -> None:
        self._repository = repository
        self._clock = clock

    def create_user(self, username: str) -> User:
        username = username.strip()
        if not username:
            raise ValidationError("Username is required")
        with _storage_errors("create_user"):
            if self._repository.find_user(username) is not None:
                raise ValidationError("Username already exists")
            user = User(
                id=self._repository.next_user_id(),
                username=username,
                createdAt=self._clock(),
            )
            self._repository.add_user(user)
        logger.info("Created user", user_id=user.id)
        return user

    def get_user(self, user_id: int) -> User:
        with _storage_errors("get_user"):
            user = self._repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_locations(self, user_id: int) -> list[SavedLocation]:
        self.get_user(user_id)
        with _storage_errors("list_locations"):
            return self._repository.list_locations(user_id)

    def get_default_location(self, user_id: int) -> SavedLocation | None:
        return next((loc for loc in self.list_locations(user_id) if loc.isDefault), None)

    def add_location(self, user_id: int, data: SavedLocationCreate) -> SavedLocation:
        self.get_user(user_id)
        with _storage_errors("add_location"):
            if data.isDefault:
                self._clear_defaults(user_id)
            location = SavedLocation(
                id=self._repository.next_location_id(),
                userId=user_id,
                **data.model_dump(),
            )
            self._repository.save_location(location)
        logger.info("Saved location", user_id=user_id, location_id=location.id)
        return location

    def update_location(
        self, user_id: int, location_id: int, data: SavedLocationUpdate
    ) -> SavedLocation:
        current = self._get_owned_location(user_id, location_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with _storage_errors("update_location"):
            if changes.get("isDefault"):
                self._clear_defaults(user_id, keep=location_id)
            location = current.model_copy(update=changes)
            self._repository.save_location(location)
        return location

    def set_default_location(self, user_id: int, location_id: int) -> SavedLocation:
        return self.update_location(user_id, location_id, SavedLocationUpdate(isDefault=True))

    def delete_location(self, user_id: int, location_id: int) -> None:
        self._get_owned_location(user_id, location_id)
        with _storage_errors("delete_location"):
            self._repository.delete_location(location_id)
        logger.info("Deleted location", user_id=user_id, location_id=location_id)

    def _get_owned_location(self, user_id: int, location_id: int) -> SavedLocation:
        self.get_user(user_id)
        with _storage_errors("get_location"):
            location = self._repository.get_location(location_id)
        if location is None or location.userId != user_id:
            raise NotFoundError("Location not found")
        return location

    def _clear_defaults(self, user_id: int, keep: int | None = None) -> None:
        for location in self._repository.list_locations(user_id):
            if location.isDefault and location.id != keep:
                self._repository.save_location(location.model_copy(update={"isDefault": False}))
