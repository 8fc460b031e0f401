import pytest

from registration.models import RoleEnum
from registration.security import verify_password
from scripts.create_admin import create_admin


def test_creates_verified_admin(db_session):
    admin = create_admin(db_session, " Ada@Example.com ", "Sup3rSecret!", "Ada", "Admin")

    assert admin.email == "ada@example.com"
    assert admin.role == RoleEnum.ADMIN
    assert admin.email_verified is True
    assert verify_password("Sup3rSecret!", admin.hashed_password)


def test_promotes_existing_user(db_session, user_factory):
    guest = user_factory(email="guest@example.com", email_verified=False)
    old_hash = guest.hashed_password

    promoted = create_admin(db_session, "guest@example.com", None, "ignored", "ignored")

    assert promoted.id == guest.id
    assert promoted.role == RoleEnum.ADMIN
    assert promoted.email_verified is True
    assert promoted.hashed_password == old_hash
    assert promoted.first_name == "Grace"


def test_new_admin_requires_password(db_session):
    with pytest.raises(ValueError):
        create_admin(db_session, "nobody@example.com", None, "No", "Body")
