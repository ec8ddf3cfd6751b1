"""Tests for State and TypeKeys."""

import pytest

from scopestore import ConfigurationError, State, TypeKeys


class User:
    def __init__(self, name):
        self.name = name


class Settings:
    pass


class TestState:
    def test_get_by_key(self):
        s = State({"x": 1})
        assert s.get("x") == 1
        assert s.get("missing") is None

    def test_get_by_key_and_type(self):
        s = State({"k": "text"})
        assert s.get("k", str) == "text"
        assert s.get("k", int) is None  # mismatch reads as absent, no error

    def test_get_by_type_uses_class_name(self):
        u = User("ada")
        s = State({"User": u})
        assert s.get(User) is u
        assert s.get(Settings) is None

    def test_get_by_type_rejects_wrong_runtime_type(self):
        s = State({"User": "not a user"})
        assert s.get(User) is None

    def test_constructor_copies_input(self):
        data = {"x": 1}
        s = State(data)
        data["x"] = 2
        assert s.get("x") == 1

    def test_copy_is_independent(self):
        s = State({"x": 1})
        c = s.copy()
        c.update_key("x", 2)
        c.update_key("y", 3)
        assert s.get("x") == 1
        assert "y" not in s
        assert c.keys() == {"x", "y"}

    def test_update_key_with_type(self):
        s = State()
        u = User("bob")
        s.update_key(User, u)
        assert s.get("User") is u
        assert User in s

    def test_equality_by_entries(self):
        assert State({"a": 1}) == State({"a": 1})
        assert State({"a": 1}) != State({"a": 2})

    def test_merge(self):
        base = State({"a": 1, "b": 2})
        merged = State.merge(base, {"b": 20, "c": 30})
        assert merged.to_dict() == {"a": 1, "b": 20, "c": 30}
        assert base.to_dict() == {"a": 1, "b": 2}

    def test_idempotent_read(self):
        s = State({"k": [1, 2]})
        assert s.get("k") is s.get("k")


class TestTypeKeys:
    def test_explicit_tag(self):
        keys = TypeKeys({User: "current_user"})
        s = State({"current_user": User("eve")}, type_keys=keys)
        assert s.get(User).name == "eve"
        assert keys.key_for(User) == "current_user"
        assert keys.is_registered(User)

    def test_fallback_to_class_name(self):
        assert TypeKeys().key_for(Settings) == "Settings"

    def test_same_tag_for_two_types_rejected(self):
        keys = TypeKeys()
        keys.register(User, "shared")
        with pytest.raises(ConfigurationError):
            keys.register(Settings, "shared")

    def test_two_tags_for_one_type_rejected(self):
        keys = TypeKeys()
        keys.register(User, "a")
        with pytest.raises(ConfigurationError):
            keys.register(User, "b")

    def test_reregister_same_tag_is_fine(self):
        keys = TypeKeys()
        keys.register(User, "u")
        assert keys.register(User, "u") == "u"

    def test_copy_keeps_registry(self):
        keys = TypeKeys({User: "me"})
        s = State({"me": User("x")}, type_keys=keys)
        assert s.copy().get(User) is s.get(User)
