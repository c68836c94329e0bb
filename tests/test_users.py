from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from usermanagement.errors import ConflictError, NotFoundError, StoreError, ValidationError
from usermanagement.models import User, UserInput
from usermanagement.store import UserStore
from usermanagement.users import UserService, validate_user_input


class SteppingClock:
    def __init__(self) -> None:
        self.current = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture()
def service() -> UserService:
    return UserService(UserStore(clock=SteppingClock()))


def _create(service: UserService, name: str, email: str, **extra: str) -> User:
    return service.create(UserInput(name=name, email=email, **extra))


def test_create_and_list_orders_by_name(service: UserService) -> None:
    _create(service, "Charlie", "charlie@example.com")
    _create(service, "Alice", "alice@example.com")
    _create(service, "Bob", "bob@example.com")

    assert [user.name for user in service.list_all()] == ["Alice", "Bob", "Charlie"]


def test_create_sets_matching_timestamps(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")
    assert user.created_at == user.updated_at


def test_create_rejects_email_differing_only_in_case(service: UserService) -> None:
    _create(service, "Ann Lee", "Ann@X.com")

    with pytest.raises(ConflictError):
        _create(service, "Bob", "ann@x.com")

    assert [user.name for user in service.list_all()] == ["Ann Lee"]


@pytest.mark.parametrize(
    ("name", "email", "message"),
    [
        ("", "a@example.com", "Name is required"),
        ("A", "a@example.com", "Name must be between 2 and 100 characters"),
        ("x" * 101, "a@example.com", "Name must be between 2 and 100 characters"),
        ("Alice", "", "Email is required"),
        ("Alice", "not-an-email", "Email must be a valid email address"),
        ("Alice", "a" * 250 + "@example.com", "Email cannot exceed 255 characters"),
    ],
)
def test_create_validates_required_fields(
    service: UserService, name: str, email: str, message: str
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        _create(service, name, email)
    assert message in excinfo.value.errors
    assert service.is_empty()


def test_validation_reports_every_violation() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_user_input(
            UserInput(name="", email="bad", phone="1" * 21, website="w" * 256, company="c" * 256)
        )
    assert excinfo.value.errors == [
        "Name is required",
        "Email must be a valid email address",
        "Phone number cannot exceed 20 characters",
        "Website URL cannot exceed 255 characters",
        "Company name cannot exceed 255 characters",
    ]


def test_validation_trims_and_drops_blank_optionals() -> None:
    cleaned = validate_user_input(
        UserInput(name="  Alice  ", email=" alice@example.com ", phone="   ", company=" Acme ")
    )
    assert cleaned == UserInput(name="Alice", email="alice@example.com", company="Acme")


def test_get_by_id_raises_for_missing_user(service: UserService) -> None:
    with pytest.raises(NotFoundError):
        service.get_by_id(999)


def test_update_overwrites_fields_and_preserves_created_at(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com", company="Acme")

    updated = service.update(
        user.id, UserInput(name="Alice Smith", email="alice.smith@example.com", phone="555-0100")
    )

    assert updated.id == user.id
    assert updated.name == "Alice Smith"
    assert updated.email == "alice.smith@example.com"
    assert updated.phone == "555-0100"
    assert updated.company is None
    assert updated.created_at == user.created_at
    assert updated.updated_at > user.updated_at
    assert service.get_by_id(user.id) == updated


def test_update_to_own_email_in_any_casing_succeeds(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")
    _create(service, "Bob", "bob@example.com")

    updated = service.update(user.id, UserInput(name="Alice", email="ALICE@Example.COM"))
    assert updated.email == "ALICE@Example.COM"


def test_update_rejects_email_of_another_user(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")
    _create(service, "Bob", "bob@example.com")

    with pytest.raises(ConflictError):
        service.update(user.id, UserInput(name="Alice", email="Bob@example.com"))

    assert service.get_by_id(user.id).email == "alice@example.com"


def test_update_missing_user_leaves_store_unchanged(service: UserService) -> None:
    _create(service, "Alice", "alice@example.com")
    before = service.list_all()

    with pytest.raises(NotFoundError):
        service.update(999, UserInput(name="Nobody", email="nobody@example.com"))

    assert service.list_all() == before


def test_update_missing_user_is_reported_before_validation(service: UserService) -> None:
    with pytest.raises(NotFoundError):
        service.update(999, UserInput(name="", email=""))


def test_update_validates_fields(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")
    with pytest.raises(ValidationError):
        service.update(user.id, UserInput(name="A", email="alice@example.com"))


def test_delete_is_idempotent_in_effect(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")

    assert service.delete(user.id) is True
    assert service.delete(user.id) is False
    assert service.delete(12345) is False
    assert service.is_empty()


def test_deleted_email_can_be_registered_again(service: UserService) -> None:
    user = _create(service, "Alice", "alice@example.com")
    service.delete(user.id)

    again = _create(service, "Alice", "Alice@example.com")
    assert again.id != user.id


def test_search_blank_term_matches_list_all(service: UserService) -> None:
    _create(service, "Bob", "bob@example.com")
    _create(service, "Alice", "alice@example.com")

    assert service.search("") == service.list_all()
    assert service.search("   ") == service.list_all()
    assert service.search(None) == service.list_all()


def test_search_matches_name_email_and_company(service: UserService) -> None:
    _create(service, "Leanne Graham", "sincere@april.biz", company="Romaguera-Crona")
    _create(service, "Ervin Howell", "shanna@melissa.tv", company="Deckow-Crist")
    _create(service, "Clementine Bauch", "nathan@yesenia.net")

    assert [user.name for user in service.search("GRAHAM")] == ["Leanne Graham"]
    assert [user.name for user in service.search("melissa")] == ["Ervin Howell"]
    assert [user.name for user in service.search("crist")] == ["Ervin Howell"]
    assert [user.name for user in service.search("cr")] == ["Ervin Howell", "Leanne Graham"]
    assert service.search("zzz") == []


def test_search_results_are_subset_of_list_all(service: UserService) -> None:
    for index, name in enumerate(["Anna", "Hannah", "Joanne", "Bob"]):
        _create(service, name, f"user{index}@example.com", company="Nanotech" if index == 3 else None)

    everyone = service.list_all()
    results = service.search("an")
    assert all(user in everyone for user in results)
    assert [user.name for user in results] == ["Anna", "Bob", "Hannah", "Joanne"]
    for user in results:
        haystacks = [user.name.lower(), user.email.lower(), (user.company or "").lower()]
        assert any("an" in haystack for haystack in haystacks)


def test_load_seed_keeps_identifiers_and_skips_uniqueness(service: UserService) -> None:
    timestamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    users = [
        User(id=4, name="Patricia", email="dup@example.com", created_at=timestamp, updated_at=timestamp),
        User(id=9, name="Glenna", email="DUP@example.com", created_at=timestamp, updated_at=timestamp),
    ]

    assert service.load_seed(users) == 2
    assert [user.id for user in service.list_all()] == [9, 4]
    assert service.get_by_id(4).created_at == timestamp

    created = _create(service, "Newcomer", "new@example.com")
    assert created.id == 10


def test_load_seed_is_all_or_nothing(service: UserService) -> None:
    timestamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    users = [
        User(id=1, name="One", email="one@example.com", created_at=timestamp, updated_at=timestamp),
        User(id=1, name="Again", email="again@example.com", created_at=timestamp, updated_at=timestamp),
    ]

    with pytest.raises(StoreError):
        service.load_seed(users)
    assert service.is_empty()


def test_concurrent_creates_with_same_email_admit_one(service: UserService) -> None:
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def worker(index: int) -> None:
        barrier.wait()
        try:
            _create(service, f"User {index}", "Shared@Example.com" if index % 2 else "shared@example.com")
        except ConflictError:
            result = "conflict"
        else:
            result = "created"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("created") == 1
    assert outcomes.count("conflict") == 7
    assert len(service.list_all()) == 1
