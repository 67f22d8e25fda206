# tests/test_admin_tools.py
import pytest

from mindful_kids import models, security
from mindful_kids.bootstrap import create_or_update_admin
from mindful_kids.config import get_settings
from mindful_kids.scripts import set_admin

from conftest import make_user


@pytest.fixture
def settings_env(monkeypatch):
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, value)
        get_settings.cache_clear()
    yield _set
    get_settings.cache_clear()


def test_bootstrap_skipped_without_credentials(db_session):
    assert create_or_update_admin(lambda: db_session) is None
    assert db_session.query(models.User).count() == 0


def test_bootstrap_creates_admin(db_session, settings_env):
    settings_env(ADMIN_EMAIL="root@example.com", ADMIN_PASSWORD="bootstrap-secret")
    user_id = create_or_update_admin(lambda: db_session)
    user = db_session.get(models.User, user_id)
    assert user.role == models.UserRole.admin
    assert security.verify_password("bootstrap-secret", user.password_hash)


def test_bootstrap_repairs_existing_account(db_session, settings_env):
    existing_id = make_user(db_session, "root@example.com").id
    settings_env(ADMIN_EMAIL="root@example.com", ADMIN_PASSWORD="rotated-secret")
    assert create_or_update_admin(lambda: db_session) == existing_id
    user = db_session.get(models.User, existing_id)
    assert user.role == models.UserRole.admin
    assert security.verify_password("rotated-secret", user.password_hash)


def test_set_admin_requires_opt_in(db_session, monkeypatch):
    make_user(db_session, "promote@example.com")
    monkeypatch.setattr(set_admin, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(set_admin, "setup_logging", lambda: None)
    assert set_admin.main(["promote@example.com"]) == 2


def test_set_admin_promotes_and_audits(db_session, monkeypatch, settings_env):
    user_id = make_user(db_session, "promote@example.com").id
    settings_env(ALLOW_ADMIN_PROMOTION="true")
    monkeypatch.setattr(set_admin, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(set_admin, "setup_logging", lambda: None)

    assert set_admin.main(["promote@example.com"]) == 0
    assert db_session.get(models.User, user_id).role == models.UserRole.admin
    entry = db_session.query(models.AdminAuditLog).one()
    assert entry.admin_user_id is None
    assert entry.target_id == user_id
    assert set_admin.main(["nobody@example.com"]) == 1
