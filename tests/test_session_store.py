import pytest

from utils.session_store import (
    ADMIN_TOKEN_KEY,
    ADMIN_USER_KEY,
    TOKEN_KEY,
    USER_KEY,
    WORKER_KEY,
    WORKER_TOKEN_KEY,
    FlaskSessionStore,
    MemoryStore,
    SessionStore,
)


def test_json_round_trip(store):
    store.set_json(USER_KEY, {"id": 1, "city": "Jaipur"})

    assert store.get_json(USER_KEY) == {"id": 1, "city": "Jaipur"}
    assert store.get_json("absent") is None


def test_corrupt_json_raises_value_error(store):
    store.set(USER_KEY, "{oops")

    with pytest.raises(ValueError):
        store.get_json(USER_KEY)


def test_clear_realm_only_touches_that_realm():
    store = MemoryStore(
        {
            TOKEN_KEY: "t",
            USER_KEY: "{}",
            ADMIN_TOKEN_KEY: "a",
            ADMIN_USER_KEY: "{}",
            WORKER_TOKEN_KEY: "w",
            WORKER_KEY: "{}",
        }
    )

    store.clear_realm("admin")

    assert ADMIN_TOKEN_KEY not in store.data
    assert ADMIN_USER_KEY not in store.data
    assert store.get(TOKEN_KEY) == "t"
    assert store.get(WORKER_TOKEN_KEY) == "w"


def test_unknown_realm_is_a_no_op(store):
    store.set(TOKEN_KEY, "t")

    store.clear_realm("nobody")

    assert store.get(TOKEN_KEY) == "t"


def test_flask_session_store(app):
    with app.test_request_context("/"):
        store = FlaskSessionStore()
        store.set(TOKEN_KEY, "abc")
        assert store.get(TOKEN_KEY) == "abc"
        store.remove(TOKEN_KEY)
        assert store.get(TOKEN_KEY) is None


def test_store_must_implement_storage_primitives():
    class ReadOnlyStore(SessionStore):
        def get(self, key):
            return None

    with pytest.raises(TypeError):
        ReadOnlyStore()
