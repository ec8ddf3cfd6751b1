"""Tests for Action and action_creator."""

import dataclasses

import pytest

from scopestore import Action, action_creator


class TestAction:
    def test_defaults(self):
        a = Action("PING")
        assert a.type == "PING"
        assert a.payload is None

    def test_is_immutable(self):
        a = Action("SET", 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            a.payload = 2

    def test_rejects_empty_type(self):
        with pytest.raises(TypeError):
            Action("")


class TestActionCreator:
    def test_wraps_payload(self):
        @action_creator("ADD")
        def add(text, done=False):
            return {"text": text, "done": done}

        assert add("x") == Action("ADD", {"text": "x", "done": False})
        assert add.action_type == "ADD"
        assert add.__name__ == "add"
