import pytest

from account_service import AccountService
from errors import Conflict, Forbidden, NotFound, StorageFailure, Unauthenticated
from schemas import TaskCreate, UserUpdate


@pytest.fixture()
def admin(make_user):
    return make_user("Root", role="admin")


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


def test_list_users_strips_secrets(admin_service, admin, alice, principal_of):
    result = admin_service.list_users(principal_of(admin))
    assert {u.id for u in result} == {admin.id, alice.id}
    for user in result:
        assert "hashed_password" not in user.model_dump()


def test_list_users_requires_admin(admin_service, alice, principal_of):
    with pytest.raises(Forbidden):
        admin_service.list_users(principal_of(alice))
    with pytest.raises(Unauthenticated):
        admin_service.list_users(None)


def test_update_user_is_partial(admin_service, admin, alice, principal_of):
    updated = admin_service.update_user(principal_of(admin), alice.id, UserUpdate(role="admin"))
    assert updated.role == "admin"
    assert updated.name == "Alice"
    assert updated.email == alice.email


def test_update_user_ignores_empty_strings(admin_service, admin, alice, principal_of):
    updated = admin_service.update_user(principal_of(admin), alice.id, UserUpdate(name="", email=""))
    assert updated.name == "Alice"


def test_update_user_rejects_taken_email(admin_service, admin, alice, principal_of):
    with pytest.raises(Conflict):
        admin_service.update_user(principal_of(admin), alice.id, UserUpdate(email=admin.email))


def test_update_missing_user(admin_service, admin, principal_of):
    with pytest.raises(NotFound):
        admin_service.update_user(principal_of(admin), "nope", UserUpdate(name="x"))


def test_update_user_requires_admin(admin_service, alice, principal_of):
    with pytest.raises(Forbidden):
        admin_service.update_user(principal_of(alice), alice.id, UserUpdate(role="admin"))


def test_admin_cannot_delete_self(admin_service, users, admin, principal_of):
    with pytest.raises(Forbidden):
        admin_service.delete_user(principal_of(admin), admin.id)
    assert users.find_by_id(admin.id) is not None


def test_second_admin_can_delete_first(admin_service, users, admin, make_user, principal_of):
    other_admin = make_user("Root2", role="admin")
    admin_service.delete_user(principal_of(other_admin), admin.id)
    assert users.find_by_id(admin.id) is None


def test_delete_user_cascades_owned_tasks(admin_service, task_service, tasks, users, blobs, admin, alice, make_user, principal_of):
    import io
    from task_service import AttachmentPayload

    bob = make_user("Bob")
    owned = task_service.create_task(principal_of(alice), TaskCreate(title="Alice's"))
    attachment = task_service.add_attachment(
        principal_of(alice), owned.id, AttachmentPayload("a.txt", "text/plain", io.BytesIO(b"abc")),
    )
    assigned_only = task_service.create_task(principal_of(bob), TaskCreate(title="Bob's", assigned_user_ids=[alice.id]))

    admin_service.delete_user(principal_of(admin), alice.id)

    assert users.find_by_id(alice.id) is None
    assert tasks.find_by_id(owned.id) is None
    assert tasks.find_by_id(assigned_only.id) is not None
    # Blobs der geloeschten Aufgaben bleiben liegen
    assert blobs.exists(attachment.blob_id)


def test_delete_missing_user(admin_service, admin, principal_of):
    with pytest.raises(NotFound):
        admin_service.delete_user(principal_of(admin), "nope")


def test_delete_user_requires_admin(admin_service, alice, make_user, principal_of):
    bob = make_user("Bob")
    with pytest.raises(Forbidden):
        admin_service.delete_user(principal_of(alice), bob.id)


def test_delete_user_attempts_cascade_after_failed_user_delete(admin_service, users, tasks, task_service, admin, alice, principal_of, monkeypatch):
    task = task_service.create_task(principal_of(alice), TaskCreate(title="Plan"))

    def broken_delete(user_id):
        raise StorageFailure("users table locked")

    monkeypatch.setattr(users, "delete", broken_delete)
    with pytest.raises(StorageFailure) as exc:
        admin_service.delete_user(principal_of(admin), alice.id)

    assert "user record" in exc.value.detail
    assert tasks.find_by_id(task.id) is None


def test_delete_user_reports_failed_cascade(admin_service, users, tasks, admin, alice, principal_of, monkeypatch):
    def broken_cascade(owner_id):
        raise StorageFailure("tasks table locked")

    monkeypatch.setattr(tasks, "delete_by_owner", broken_cascade)
    with pytest.raises(StorageFailure) as exc:
        admin_service.delete_user(principal_of(admin), alice.id)

    assert "owned tasks" in exc.value.detail
    assert users.find_by_id(alice.id) is None


def test_get_user(admin_service, admin, alice, principal_of):
    assert admin_service.get_user(principal_of(admin), alice.id).email == alice.email
    with pytest.raises(NotFound):
        admin_service.get_user(principal_of(admin), "nope")


def test_bootstrap_admin_is_created_once(users):
    accounts = AccountService(users)
    created = accounts.ensure_admin("root@example.com", "secret123")
    assert created.role == "admin"
    assert accounts.ensure_admin("root@example.com", "other-password").id == created.id
    assert len(users.list_all()) == 1


def test_bootstrap_admin_email_taken_by_plain_user(users, alice, caplog):
    with caplog.at_level("WARNING", logger="task_tracker.account_service"):
        existing = AccountService(users).ensure_admin(alice.email, "secret123")

    assert existing.id == alice.id
    assert existing.role == "user"
    assert "non-admin" in caplog.text
