"""End-to-end ownership scenarios across hooks, manager and policy."""

import pytest

from resource_ownership.config import RoleDefinition
from resource_ownership.events import OwnershipEventTypes, RecordingEventSink
from resource_ownership.hooks import OwnershipHooks
from resource_ownership.manager import OwnershipManager

from sample_models import Document, Project
from support import make_config


@pytest.fixture
def two_role_manager(db_session, sink):
    config = make_config(
        "multiple",
        roles={
            "owner": RoleDefinition(name="Owner", permissions=["*"]),
            "viewer": RoleDefinition(name="Viewer", permissions=["view"]),
        },
    )
    return OwnershipManager(config, db_session, sink=sink)


def test_single_mode_creator_owns_resource(single_config, db_session, alice, bob):
    hooks = OwnershipHooks(single_config).install()
    try:
        manager = OwnershipManager(single_config, db_session)
        manager.set(alice)
        document = Document(title="Roadmap")
        db_session.add(document)
        db_session.commit()

        assert document.owner_type == "User"
        assert document.owner_id == str(alice.id)
        assert manager.is_owned_by(document, alice) is True
        assert manager.is_owned_by(document, bob) is False
    finally:
        hooks.remove()


def test_multiple_mode_role_permissions(two_role_manager, project, alice, bob):
    two_role_manager.add_owner(project, alice, "owner")
    two_role_manager.add_owner(project, bob, "viewer")

    assert two_role_manager.owner_has_permission(project, bob, "edit") is False
    assert two_role_manager.owner_has_permission(project, bob, "view") is True
    assert two_role_manager.owner_has_permission(project, alice, "edit") is True


def test_add_then_remove_round_trip(multi_manager, project, alice, sink):
    multi_manager.add_owner(project, alice, "editor")
    multi_manager.remove_owner(project, alice)

    assert multi_manager.has_owner(project, alice) is False
    assert len(sink.of_type(OwnershipEventTypes.DELETED)) == 1


def test_add_owner_twice_keeps_one_record(multi_manager, project, alice):
    multi_manager.add_owner(project, alice, "viewer", ["share"])
    multi_manager.add_owner(project, alice, "editor", ["export"])

    record = multi_manager.get_ownership_record(project, alice)
    assert multi_manager.owners_count(project) == 1
    assert record.role == "editor"
    assert record.permissions == ["export"]


def test_transfer_keeps_role(multi_manager, project, alice, bob):
    multi_manager.add_owner(project, alice, "editor")

    multi_manager.transfer_ownership(project, alice, bob)

    assert multi_manager.has_owner(project, bob) is True
    assert multi_manager.has_owner(project, alice) is False
    assert multi_manager.get_ownership_record(project, bob).role == "editor"


@pytest.mark.parametrize("mode", ["single", "multiple"])
def test_absent_actor_never_owns(mode, db_session, alice):
    manager = OwnershipManager(make_config(mode), db_session, sink=RecordingEventSink())
    project = Project(name="Apollo", owner_type="User", owner_id=str(alice.id))
    db_session.add(project)
    db_session.commit()
    if mode == "multiple":
        manager.add_owner(project, alice)

    assert manager.is_owned_by(project) is False
    assert manager.is_owned_by(project, None) is False
    assert manager.policy.view(None, project) is False


def test_run_as_inside_workflow(multi_manager, project, alice, bob):
    multi_manager.add_owner(project, alice)
    multi_manager.set(bob)

    assert multi_manager.run_as(alice, multi_manager.is_owned_by, project) is True
    assert multi_manager.is_owned_by(project) is False
