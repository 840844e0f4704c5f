from animify.services.state_store import MEDIA_ITEMS_KEY, StateStore


def test_items_are_scoped_per_session(store):
    store.set_item("a" * 32, "key", "one")
    store.set_item("b" * 32, "key", "two")

    assert store.get_item("a" * 32, "key") == "one"
    assert store.get_item("b" * 32, "key") == "two"
    assert store.get_item("c" * 32, "key") is None


def test_state_survives_a_new_store_instance(store):
    store.set_json("a" * 32, MEDIA_ITEMS_KEY, [{"id": "1"}])

    reopened = StateStore(str(store.state_dir))
    assert reopened.get_json("a" * 32, MEDIA_ITEMS_KEY) == [{"id": "1"}]


def test_unparseable_value_reads_as_missing(store):
    store.set_item("a" * 32, "key", "{not json")

    assert store.get_json("a" * 32, "key") is None


def test_corrupt_state_file_reads_as_empty(store):
    (store.state_dir / f"{'a' * 32}.json").write_text("garbage", encoding="utf-8")

    assert store.get_item("a" * 32, "key") is None
    assert store.set_item("a" * 32, "key", "value")
    assert store.get_item("a" * 32, "key") == "value"


def test_remove_item_and_clear(store):
    sid = "a" * 32
    store.set_item(sid, "one", "1")
    store.set_item(sid, "two", "2")

    store.remove_item(sid, "one")
    assert store.get_item(sid, "one") is None
    assert store.get_item(sid, "two") == "2"

    store.clear(sid)
    assert store.get_item(sid, "two") is None
    store.clear(sid)


def test_statistics_count_session_files(store):
    store.set_item("a" * 32, "k", "v")
    store.set_item("b" * 32, "k", "v")

    assert store.get_statistics()["stored_sessions"] == 2
