from app.core.database import _resolve_database_url


def test_sqlite_parent_directory_is_created(tmp_path):
    """A fresh deploy has no data/ directory yet; resolving the url must create it.

    Otherwise sqlite fails with "unable to open database file" on the first request.
    """
    db_path = tmp_path / "nested" / "data" / "testcases.db"
    url = f"sqlite:///{db_path.as_posix()}"

    assert _resolve_database_url(url) == url
    assert db_path.parent.exists()


def test_in_memory_and_server_urls_are_left_alone():
    assert _resolve_database_url("sqlite:///:memory:") == "sqlite:///:memory:"
    assert _resolve_database_url("postgresql://user:pw@localhost/testcases") == "postgresql://user:pw@localhost/testcases"
