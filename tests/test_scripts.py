"""Admin seed script."""
from werkzeug.security import check_password_hash

from app.crm import create_app
from app.crm.db import dispose_db, session_scope
from app.crm.models import Base, User
from scripts.init_db import seed_only


def test_seed_admin_is_idempotent(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_USERNAME", "boss")
    monkeypatch.setenv("ADMIN_EMAIL", "Boss@Agency.example")
    monkeypatch.setenv("ADMIN_PASSWORD", "first-pass")

    app = create_app({"DATABASE_URL": db_url})
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    seed_only(database_url=db_url)
    monkeypatch.setenv("ADMIN_PASSWORD", "second-pass")
    seed_only(database_url=db_url)

    with session_scope(app) as s:
        admins = s.query(User).filter(User.username == "boss").all()
        assert len(admins) == 1
        assert admins[0].role == "admin"
        assert admins[0].email == "Boss@Agency.example"
        assert check_password_hash(admins[0].password_hash, "first-pass")
    dispose_db(app)
