import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from portal.database import Database, translate_error
from portal.errors import DuplicateEntryError, StoreError, StoreTimeoutError
from portal.models import UserProfile


def _integrity(detail: str) -> IntegrityError:
    return IntegrityError("INSERT INTO ...", {}, Exception(detail))


@pytest.mark.parametrize(
    "exc, expected, field",
    [
        (PoolTimeoutError("QueuePool limit reached"), StoreTimeoutError, None),
        (_integrity("UNIQUE constraint failed: users.email"), DuplicateEntryError, "email"),
        (_integrity("Duplicate entry 'bob' for key 'credentials.username'"), DuplicateEntryError, "username"),
        (_integrity("NOT NULL constraint failed: users.first_name"), StoreError, None),
    ],
)
def test_translate_error_mapping(exc, expected, field):
    err = translate_error(exc)
    assert type(err) is expected
    if field:
        assert err.field == field


def test_translate_error_hides_database_text():
    exc = OperationalError("SELECT password_hash FROM credentials", {}, Exception("no such table: credentials"))
    err = translate_error(exc)
    assert type(err) is StoreError
    assert "credentials" not in str(err)
    assert "credentials" not in err.public_message


def test_pool_timeout_is_distinct_from_query_errors(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'pool.db'}", pool_size=1, pool_timeout=0.2)
    held = db.engine.connect()
    try:
        with pytest.raises(StoreTimeoutError):
            with db.session() as s:
                s.execute(text("SELECT 1"))
    finally:
        held.close()
        db.dispose()


def test_query_error_is_store_error(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'query.db'}")
    try:
        with pytest.raises(StoreError) as err:
            with db.session() as s:
                s.execute(text("SELECT * FROM missing_table"))
        assert not isinstance(err.value, StoreTimeoutError)
    finally:
        db.dispose()


def test_session_rolls_back_on_error(database):
    with pytest.raises(RuntimeError):
        with database.session() as s:
            s.add(UserProfile(first_name="Eve", last_name="M", email="eve@example.com"))
            s.flush()
            raise RuntimeError("abort")
    with database.session() as s:
        assert s.query(UserProfile).count() == 0
