"""
Tests for the ownership record store.

Verifies:
- OwnershipModel structure and to_dict()
- upsert semantics, including the fallback when a concurrent insert wins
- bulk update and delete helpers
"""

import warnings

import pytest
from sqlalchemy.exc import IntegrityError, SADeprecationWarning

from resource_ownership.db.models import OwnershipModel
from resource_ownership.db.store import OwnershipStore, normalize_permissions
from resource_ownership.refs import EntityRef

PROJECT = EntityRef(type="project", id="1")
OTHER_PROJECT = EntityRef(type="project", id="2")
ALICE = EntityRef(type="User", id="1")
BOB = EntityRef(type="User", id="2")


@pytest.fixture
def store(db_session) -> OwnershipStore:
    return OwnershipStore(db_session)


class TestOwnershipModel:
    def test_model_has_required_columns(self):
        columns = {c.name for c in OwnershipModel.__table__.columns}

        assert columns == {
            "id",
            "ownable_type",
            "ownable_id",
            "owner_type",
            "owner_id",
            "role",
            "permissions",
            "created_at",
            "updated_at",
        }

    def test_unique_constraint(self):
        constraints = {c.name for c in OwnershipModel.__table__.constraints}

        assert "ownership_unique" in constraints

    def test_to_dict(self, store):
        record, _ = store.upsert(PROJECT, ALICE, "editor", ["export"])

        result = record.to_dict()
        assert result["ownable_type"] == "project"
        assert result["ownable_id"] == "1"
        assert result["owner_type"] == "User"
        assert result["owner_id"] == "1"
        assert result["role"] == "editor"
        assert result["permissions"] == ["export"]
        assert result["created_at"] is not None

    def test_refs(self, store):
        record, _ = store.upsert(PROJECT, ALICE, "viewer")

        assert record.owner_ref == ALICE
        assert record.ownable_ref == PROJECT
        assert record.custom_permissions == frozenset()

    def test_duplicate_pair_is_rejected_by_database(self, db_session, store):
        store.upsert(PROJECT, ALICE, "viewer")
        db_session.add(
            OwnershipModel(
                ownable_type="project",
                ownable_id="1",
                owner_type="User",
                owner_id="1",
                role="editor",
            )
        )

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestNormalizePermissions:
    def test_sorted_unique(self):
        assert normalize_permissions(["edit", "view", "edit"]) == ["edit", "view"]

    def test_empty_is_null(self):
        assert normalize_permissions([]) is None
        assert normalize_permissions(None) is None


class TestUpsert:
    def test_creates(self, store):
        record, created = store.upsert(PROJECT, ALICE, "viewer")

        assert created is True
        assert store.count(PROJECT) == 1
        assert store.exists(PROJECT, ALICE)
        assert store.exists(PROJECT, ALICE, role="viewer")
        assert not store.exists(PROJECT, ALICE, role="editor")

    def test_insert_uses_no_deprecated_session_api(self, store):
        with warnings.catch_warnings():
            warnings.simplefilter("error", SADeprecationWarning)
            _, created = store.upsert(PROJECT, BOB, "viewer")

        assert created is True

    def test_overwrites_existing(self, store):
        first, _ = store.upsert(PROJECT, ALICE, "viewer", ["export"])
        second, created = store.upsert(PROJECT, ALICE, "editor")

        assert created is False
        assert second.id == first.id
        assert second.role == "editor"
        assert second.permissions is None
        assert store.count(PROJECT) == 1

    def test_pairs_are_independent(self, store):
        store.upsert(PROJECT, ALICE, "viewer")
        store.upsert(PROJECT, BOB, "editor")
        store.upsert(OTHER_PROJECT, ALICE, "owner")

        assert store.count(PROJECT) == 2
        assert store.count(OTHER_PROJECT) == 1
        assert [r.owner_ref for r in store.list(PROJECT)] == [ALICE, BOB]
        assert [r.owner_ref for r in store.list(PROJECT, role="editor")] == [BOB]
        assert store.list(PROJECT, owner_type="Team") == []

    def test_lost_insert_race_falls_back_to_update(self, monkeypatch, db_session, store):
        store.upsert(PROJECT, ALICE, "viewer")
        real_find = store.find
        calls = []

        def stale_find(resource, owner):
            # First lookup misses, as if the row was inserted concurrently
            calls.append(1)
            if len(calls) == 1:
                return None
            return real_find(resource, owner)

        monkeypatch.setattr(store, "find", stale_find)

        record, created = store.upsert(PROJECT, ALICE, "editor")

        assert created is False
        assert record.role == "editor"
        assert len(calls) == 2
        assert store.count(PROJECT) == 1

    def test_uncommitted_upsert_flushes(self, db_session, store):
        store.upsert(PROJECT, ALICE, "viewer", commit=False)

        assert store.exists(PROJECT, ALICE)
        store.rollback()
        assert not store.exists(PROJECT, ALICE)


class TestBulkOperations:
    def test_update_role(self, store):
        store.upsert(PROJECT, ALICE, "viewer")

        assert store.update_role(PROJECT, ALICE, "editor") == 1
        assert store.find(PROJECT, ALICE).role == "editor"
        assert store.update_role(PROJECT, BOB, "editor") == 0

    def test_update_owner_in_place(self, store):
        record, _ = store.upsert(PROJECT, ALICE, "editor", ["export"])

        store.update(record, owner=BOB)

        assert store.find(PROJECT, ALICE) is None
        moved = store.find(PROJECT, BOB)
        assert moved.id == record.id
        assert moved.role == "editor"
        assert moved.permissions == ["export"]

    def test_update_leaves_unset_fields(self, store):
        record, _ = store.upsert(PROJECT, ALICE, "editor", ["export"])

        store.update(record, permissions=["share"])

        assert record.role == "editor"
        assert record.permissions == ["share"]

    def test_delete(self, store):
        store.upsert(PROJECT, ALICE, "viewer")
        store.upsert(PROJECT, BOB, "viewer")

        assert store.delete(PROJECT, ALICE) == 1
        assert store.delete(PROJECT, ALICE) == 0
        assert store.count(PROJECT) == 1

    def test_delete_all(self, store):
        store.upsert(PROJECT, ALICE, "viewer")
        store.upsert(PROJECT, BOB, "viewer")
        store.upsert(OTHER_PROJECT, BOB, "viewer")

        assert store.delete_all(PROJECT) == 2
        assert store.count(PROJECT) == 0
        assert store.count(OTHER_PROJECT) == 1
