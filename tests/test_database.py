from flowday.database import ENV_DATA_DIR, Database, get_db_path


def test_items(db) -> None:
    assert db.get_item("k") is None
    db.set_item("k", "工作日")
    assert db.get_item("k") == "工作日"
    db.set_item("k", "v2")
    assert db.get_item("k") == "v2"
    db.remove_item("k")
    db.remove_item("k")
    assert db.get_item("k") is None


def test_settings(db) -> None:
    assert db.get_setting("missing", 5) == 5
    db.set_setting("view", {"mode": "map"})
    assert db.get_setting("view") == {"mode": "map"}


def test_data_survives_reopen(tmp_path) -> None:
    first = Database(tmp_path / "a.db")
    first.set_item("k", "v")
    first.close()

    second = Database(tmp_path / "a.db")
    assert second.get_item("k") == "v"
    second.close()


def test_data_dir_override(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(ENV_DATA_DIR, str(tmp_path / "data"))
    path = get_db_path()
    assert path == tmp_path / "data" / "flowday.db"
    assert path.parent.is_dir()
