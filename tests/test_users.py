"""Tests for user and saved location management."""

import pytest
from conftest import NOW, FakeClock

from weatherview.api.schemas import SavedLocationCreate, SavedLocationUpdate
from weatherview.errors import NotFoundError, StorageError, ValidationError
from weatherview.services.users import InMemoryUserRepository, UserService


class FailingRepository(InMemoryUserRepository):
    """Repository whose storage is unreachable."""

    def list_locations(self, user_id: int):
        raise OSError("disk full")


@pytest.fixture
def users(clock: FakeClock) -> UserService:
    return UserService(InMemoryUserRepository(), clock=clock)


def home(**overrides) -> SavedLocationCreate:
    data = {"name": "Home", "lat": 24.86, "lon": 67.0, "country": "PK"}
    data.update(overrides)
    return SavedLocationCreate(**data)


class TestUsers:
    """Tests for user creation and lookup."""

    def test_create_user(self, users: UserService) -> None:
        user = users.create_user("  amina ")

        assert user.id == 1
        assert user.username == "amina"
        assert user.createdAt == NOW
        assert users.get_user(user.id) == user

    def test_blank_username(self, users: UserService) -> None:
        with pytest.raises(ValidationError, match="Username is required"):
            users.create_user("   ")

    def test_duplicate_username(self, users: UserService) -> None:
        users.create_user("amina")
        with pytest.raises(ValidationError, match="already exists"):
            users.create_user("amina")

    def test_unknown_user(self, users: UserService) -> None:
        with pytest.raises(NotFoundError, match="User not found"):
            users.get_user(42)


class TestSavedLocations:
    """Tests for saved locations and the single-default rule."""

    def test_add_and_list(self, users: UserService) -> None:
        user = users.create_user("amina")
        location = users.add_location(user.id, home())

        assert location.userId == user.id
        assert location.isDefault is False
        assert users.list_locations(user.id) == [location]

    def test_new_default_replaces_previous(self, users: UserService) -> None:
        user = users.create_user("amina")
        first = users.add_location(user.id, home(isDefault=True))
        second = users.add_location(user.id, home(name="Work", isDefault=True))

        defaults = [loc for loc in users.list_locations(user.id) if loc.isDefault]
        assert defaults == [second]
        assert users.get_default_location(user.id) == second
        assert first.id != second.id

    def test_set_default(self, users: UserService) -> None:
        user = users.create_user("amina")
        first = users.add_location(user.id, home(isDefault=True))
        second = users.add_location(user.id, home(name="Work"))

        users.set_default_location(user.id, second.id)
        users.set_default_location(user.id, second.id)

        assert users.get_default_location(user.id).id == second.id
        by_id = {loc.id: loc for loc in users.list_locations(user.id)}
        assert by_id[first.id].isDefault is False

    def test_defaults_are_per_user(self, users: UserService) -> None:
        amina = users.create_user("amina")
        bilal = users.create_user("bilal")
        users.add_location(amina.id, home(isDefault=True))
        users.add_location(bilal.id, home(isDefault=True))

        assert users.get_default_location(amina.id) is not None
        assert users.get_default_location(bilal.id) is not None

    def test_partial_update(self, users: UserService) -> None:
        user = users.create_user("amina")
        location = users.add_location(user.id, home())

        updated = users.update_location(user.id, location.id, SavedLocationUpdate(name="Flat"))

        assert updated.name == "Flat"
        assert updated.lat == location.lat
        assert updated.country == "PK"

    def test_delete(self, users: UserService) -> None:
        user = users.create_user("amina")
        location = users.add_location(user.id, home())

        users.delete_location(user.id, location.id)

        assert users.list_locations(user.id) == []
        with pytest.raises(NotFoundError, match="Location not found"):
            users.delete_location(user.id, location.id)

    def test_location_owned_by_another_user(self, users: UserService) -> None:
        amina = users.create_user("amina")
        bilal = users.create_user("bilal")
        location = users.add_location(amina.id, home())

        with pytest.raises(NotFoundError):
            users.update_location(bilal.id, location.id, SavedLocationUpdate(name="Mine"))

    def test_unknown_user_locations(self, users: UserService) -> None:
        with pytest.raises(NotFoundError, match="User not found"):
            users.add_location(7, home())

    def test_storage_failure(self, clock: FakeClock) -> None:
        users = UserService(FailingRepository(), clock=clock)
        user = users.create_user("amina")

        with pytest.raises(StorageError):
            users.list_locations(user.id)
