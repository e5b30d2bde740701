"""
Pytest configuration and shared fixtures for the petition API tests.

Testing standards:
- Async tests run under pytest-asyncio (auto mode, see pyproject.toml).
- Repository functions are swapped for `MemoryStore` methods, so services
  run their real control flow against in-memory tables.
- `FakeConnection.transaction()` snapshots the tables and restores them if
  the block raises, mirroring a rolled-back Postgres transaction.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import pytest

from auth import repository as auth_repository
from auth.permissions import Actor
from core import db
from petitions import repository as petitions_repository
from petitions.listing import ListingCriteria
from tiers import repository as tiers_repository
from users import repository as users_repository

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

DEFAULT_CATEGORIES = {1: "Wildlife", 2: "Education", 3: "Technology"}


def fast_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


class MemoryStore:
    """In-memory stand-in for the petition database."""

    def __init__(self) -> None:
        self.users: dict[int, dict[str, Any]] = {}
        self.categories: dict[int, str] = dict(DEFAULT_CATEGORIES)
        self.petitions: dict[int, dict[str, Any]] = {}
        self.tiers: dict[int, dict[str, Any]] = {}
        self.supporters: dict[int, dict[str, Any]] = {}
        self.locks: list[tuple[str, int]] = []
        self._next_id = 1
        self._clock = 0

    # -- transaction support -------------------------------------------------

    def snapshot(self) -> tuple:
        return copy.deepcopy((self.users, self.petitions, self.tiers, self.supporters, self._next_id))

    def restore(self, state: tuple) -> None:
        self.users, self.petitions, self.tiers, self.supporters, self._next_id = state

    def _new_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def _tick(self) -> datetime:
        self._clock += 1
        return BASE_TIME + timedelta(minutes=self._clock)

    # -- seeding helpers -----------------------------------------------------

    def add_user(
        self,
        email: str,
        *,
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        password: str = "password1",
        auth_token: str | None = None,
    ) -> int:
        user_id = self._new_id()
        self.users[user_id] = {
            "id": user_id,
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "password": fast_hash(password),
            "auth_token": auth_token,
            "image_filename": None,
        }
        return user_id

    def add_petition(
        self,
        owner_id: int,
        title: str,
        *,
        description: str = "A petition",
        category_id: int = 1,
        tier_costs: tuple[int, ...] = (10,),
    ) -> int:
        petition_id = self._new_id()
        self.petitions[petition_id] = {
            "id": petition_id,
            "title": title,
            "description": description,
            "category_id": category_id,
            "owner_id": owner_id,
            "creation_date": self._tick(),
            "image_filename": None,
        }
        for index, cost in enumerate(tier_costs):
            self.add_tier(petition_id, f"Tier {index + 1}", cost=cost)
        return petition_id

    def add_tier(self, petition_id: int, title: str, *, cost: int = 10, description: str = "tier") -> int:
        tier_id = self._new_id()
        self.tiers[tier_id] = {
            "id": tier_id,
            "petition_id": petition_id,
            "title": title,
            "description": description,
            "cost": cost,
        }
        return tier_id

    def add_supporter(self, tier_id: int, user_id: int, *, message: str | None = None) -> int:
        supporter_id = self._new_id()
        self.supporters[supporter_id] = {
            "id": supporter_id,
            "petition_id": self.tiers[tier_id]["petition_id"],
            "support_tier_id": tier_id,
            "user_id": user_id,
            "message": message,
            "timestamp": self._tick(),
        }
        return supporter_id

    def tiers_of(self, petition_id: int) -> list[dict[str, Any]]:
        return sorted(
            (t for t in self.tiers.values() if t["petition_id"] == petition_id),
            key=lambda t: t["id"],
        )

    def _supporters_of_petition(self, petition_id: int) -> list[dict[str, Any]]:
        tier_ids = {t["id"] for t in self.tiers_of(petition_id)}
        return [s for s in self.supporters.values() if s["support_tier_id"] in tier_ids]

    # -- auth.repository -----------------------------------------------------

    async def get_user_by_token(self, token: str) -> dict | None:
        rows = [u for u in self.users.values() if u["auth_token"] is not None and u["auth_token"] == token]
        if len(rows) > 1:
            raise db.IntegrityViolation("duplicate token")
        return {"id": rows[0]["id"], "auth_token": rows[0]["auth_token"]} if rows else None

    # -- users.repository ----------------------------------------------------

    async def email_in_use(self, email: str, *, exclude_user_id: int | None = None) -> bool:
        return any(
            u["email"] == email.lower() and u["id"] != exclude_user_id for u in self.users.values()
        )

    async def insert_user(self, *, email: str, first_name: str, last_name: str, password_hash: str) -> int:
        user_id = self._new_id()
        self.users[user_id] = {
            "id": user_id,
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "password": password_hash,
            "auth_token": None,
            "image_filename": None,
        }
        return user_id

    async def get_user_by_email(self, email: str) -> dict | None:
        rows = [u for u in self.users.values() if u["email"] == email.lower()]
        if len(rows) > 1:
            raise db.IntegrityViolation("duplicate email")
        return dict(rows[0]) if rows else None

    async def get_user_by_id(self, user_id: int, *, for_update: bool = False) -> dict | None:
        if for_update:
            self.locks.append(("user", user_id))
        row = self.users.get(user_id)
        return dict(row) if row else None

    async def set_auth_token(self, user_id: int, token: str) -> int:
        self.users[user_id]["auth_token"] = token
        return 1

    async def clear_auth_token(self, token: str) -> int:
        cleared = 0
        for user in self.users.values():
            if user["auth_token"] == token:
                user["auth_token"] = None
                cleared += 1
        return cleared

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> int:
        if not changes:
            return 0
        self.users[user_id].update(changes)
        return 1

    async def set_user_image(self, user_id: int, filename: str | None) -> int:
        self.users[user_id]["image_filename"] = filename
        return 1

    # -- petitions.repository ------------------------------------------------

    async def list_categories(self) -> list[dict[str, Any]]:
        return [{"category_id": k, "name": v} for k, v in sorted(self.categories.items())]

    async def count_existing_categories(self, category_ids) -> int:
        return len({c for c in category_ids if c in self.categories})

    def _summary(self, petition: dict[str, Any]) -> dict[str, Any]:
        owner = self.users[petition["owner_id"]]
        tiers = self.tiers_of(petition["id"])
        return {
            "petition_id": petition["id"],
            "title": petition["title"],
            "category_id": petition["category_id"],
            "owner_id": petition["owner_id"],
            "owner_first_name": owner["first_name"],
            "owner_last_name": owner["last_name"],
            "creation_date": petition["creation_date"],
            "number_of_supporters": len(self._supporters_of_petition(petition["id"])),
            "supporting_cost": min((t["cost"] for t in tiers), default=None),
        }

    async def list_petitions(self, criteria: ListingCriteria) -> list[dict[str, Any]]:
        rows = [self._summary(p) for p in self.petitions.values()]

        def matches(row: dict[str, Any]) -> bool:
            petition = self.petitions[row["petition_id"]]
            if criteria.q:
                needle = criteria.q.lower()
                if needle not in petition["title"].lower() and needle not in petition["description"].lower():
                    return False
            if criteria.category_ids and row["category_id"] not in criteria.category_ids:
                return False
            if criteria.supporting_cost is not None and (
                row["supporting_cost"] is None or row["supporting_cost"] > criteria.supporting_cost
            ):
                return False
            if criteria.owner_id is not None and row["owner_id"] != criteria.owner_id:
                return False
            if criteria.supporter_id is not None and not any(
                s["user_id"] == criteria.supporter_id for s in self._supporters_of_petition(row["petition_id"])
            ):
                return False
            return True

        rows = [r for r in rows if matches(r)]
        sort_fields = {
            "ALPHABETICAL": lambda r: (r["title"], r["petition_id"]),
            "COST": lambda r: (r["supporting_cost"] if r["supporting_cost"] is not None else -1, r["petition_id"]),
            "CREATED": lambda r: (r["creation_date"], r["petition_id"]),
        }
        family, direction = criteria.sort_by.value.rsplit("_", 1)
        return sorted(rows, key=sort_fields[family], reverse=direction == "DESC")

    async def title_in_use(self, title: str, *, exclude_petition_id: int | None = None) -> bool:
        return any(p["title"] == title and p["id"] != exclude_petition_id for p in self.petitions.values())

    async def insert_petition(self, *, title: str, description: str, category_id: int, owner_id: int) -> int:
        petition_id = self._new_id()
        self.petitions[petition_id] = {
            "id": petition_id,
            "title": title,
            "description": description,
            "category_id": category_id,
            "owner_id": owner_id,
            "creation_date": self._tick(),
            "image_filename": None,
        }
        return petition_id

    async def get_petition(self, petition_id: int, *, for_update: bool = False) -> dict | None:
        if for_update:
            self.locks.append(("petition", petition_id))
        row = self.petitions.get(petition_id)
        return dict(row) if row else None

    async def get_petition_detail(self, petition_id: int) -> dict | None:
        petition = self.petitions.get(petition_id)
        if petition is None:
            return None
        owner = self.users[petition["owner_id"]]
        supporters = self._supporters_of_petition(petition_id)
        return {
            "petition_id": petition_id,
            "title": petition["title"],
            "category_id": petition["category_id"],
            "owner_id": petition["owner_id"],
            "owner_first_name": owner["first_name"],
            "owner_last_name": owner["last_name"],
            "number_of_supporters": len(supporters),
            "creation_date": petition["creation_date"],
            "description": petition["description"],
            "money_raised": sum(self.tiers[s["support_tier_id"]]["cost"] for s in supporters),
        }

    async def update_petition(self, petition_id: int, changes: dict[str, Any]) -> int:
        if not changes:
            return 0
        self.petitions[petition_id].update(changes)
        return 1

    async def count_petition_supporters(self, petition_id: int) -> int:
        return len(self._supporters_of_petition(petition_id))

    async def delete_petition(self, petition_id: int) -> int:
        for tier in self.tiers_of(petition_id):
            del self.tiers[tier["id"]]
        return 1 if self.petitions.pop(petition_id, None) else 0

    async def list_supporters(self, petition_id: int) -> list[dict[str, Any]]:
        rows = sorted(self._supporters_of_petition(petition_id), key=lambda s: (s["timestamp"], s["id"]), reverse=True)
        return [
            {
                "support_id": s["id"],
                "support_tier_id": s["support_tier_id"],
                "message": s["message"],
                "supporter_id": s["user_id"],
                "supporter_first_name": self.users[s["user_id"]]["first_name"],
                "supporter_last_name": self.users[s["user_id"]]["last_name"],
                "timestamp": s["timestamp"],
            }
            for s in rows
        ]

    async def set_petition_image(self, petition_id: int, filename: str | None) -> int:
        self.petitions[petition_id]["image_filename"] = filename
        return 1

    # -- tiers.repository ----------------------------------------------------

    async def list_support_tiers(self, petition_id: int, *, for_update: bool = False) -> list[dict[str, Any]]:
        tiers = self.tiers_of(petition_id)
        if for_update:
            self.locks.extend(("support_tier", t["id"]) for t in tiers)
        return [dict(t) for t in tiers]

    async def insert_support_tier(self, *, petition_id: int, title: str, description: str, cost: int) -> int:
        return self.add_tier(petition_id, title, cost=cost, description=description)

    async def count_tier_supporters(self, tier_id: int) -> int:
        return sum(1 for s in self.supporters.values() if s["support_tier_id"] == tier_id)

    async def update_support_tier(self, tier_id: int, changes: dict[str, Any]) -> int:
        if not changes:
            return 0
        self.tiers[tier_id].update(changes)
        return 1

    async def delete_support_tier(self, tier_id: int) -> int:
        return 1 if self.tiers.pop(tier_id, None) else 0


REPOSITORY_FUNCTIONS = {
    auth_repository: ["get_user_by_token"],
    users_repository: [
        "email_in_use",
        "insert_user",
        "get_user_by_email",
        "get_user_by_id",
        "set_auth_token",
        "clear_auth_token",
        "update_user",
        "set_user_image",
    ],
    petitions_repository: [
        "list_categories",
        "count_existing_categories",
        "list_petitions",
        "title_in_use",
        "insert_petition",
        "get_petition",
        "get_petition_detail",
        "update_petition",
        "count_petition_supporters",
        "delete_petition",
        "list_supporters",
        "set_petition_image",
    ],
    tiers_repository: [
        "list_support_tiers",
        "insert_support_tier",
        "count_tier_supporters",
        "update_support_tier",
        "delete_support_tier",
    ],
}


class FakeTransaction:
    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self._snapshot: tuple | None = None

    async def __aenter__(self) -> "FakeTransaction":
        self._snapshot = self.store.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and self._snapshot is not None:
            self.store.restore(self._snapshot)
        return False


class FakeConnection:
    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self.transactions_opened = 0

    def transaction(self) -> FakeTransaction:
        self.transactions_opened += 1
        return FakeTransaction(self.store)


class InMemoryMediaStore:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.writes: list[str] = []

    async def write(self, key: str, data: bytes) -> None:
        self.writes.append(key)
        self.files[key] = data

    async def read(self, key: str) -> bytes | None:
        return self.files.get(key)

    async def delete(self, key: str) -> None:
        self.files.pop(key, None)


def _bind(method):
    async def repository_function(_conn, *args, **kwargs):
        return await method(*args, **kwargs)

    return repository_function


@pytest.fixture
def store(monkeypatch) -> MemoryStore:
    memory = MemoryStore()
    for module, names in REPOSITORY_FUNCTIONS.items():
        for name in names:
            monkeypatch.setattr(module, name, _bind(getattr(memory, name)))
    return memory


@pytest.fixture
def conn(store: MemoryStore) -> FakeConnection:
    return FakeConnection(store)


@pytest.fixture
def media() -> InMemoryMediaStore:
    return InMemoryMediaStore()


@pytest.fixture
def owner(store: MemoryStore) -> Actor:
    user_id = store.add_user("owner@example.com", first_name="Olive", last_name="Owner", auth_token="owner-token")
    return Actor(user_id=user_id, auth_token="owner-token")


@pytest.fixture
def other(store: MemoryStore) -> Actor:
    user_id = store.add_user("other@example.com", first_name="Otto", last_name="Other", auth_token="other-token")
    return Actor(user_id=user_id, auth_token="other-token")
