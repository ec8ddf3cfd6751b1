"""State — a keyed snapshot of every scope in a store.

A State maps scope keys to opaque values. A scope is addressed either by a
plain string key or by a type: the type is turned into a string tag through
a TypeKeys registry. The store never mutates a published State; each
dispatch works on a copy and swaps the reference once all scopes are done.
"""

from __future__ import annotations

from typing import Iterator, Mapping, TypeVar, overload

from scopestore.exceptions import ConfigurationError

E = TypeVar("E")


class TypeKeys:
    """Registry of explicit string tags for types used as scope keys.

    Unregistered types fall back to their simple class name.
    """

    __slots__ = ("_by_type", "_by_key")

    def __init__(self, tags: Mapping[type, str] | None = None) -> None:
        self._by_type: dict[type, str] = {}
        self._by_key: dict[str, type] = {}
        for cls, key in (tags or {}).items():
            self.register(cls, key)

    def register(self, cls: type, key: str | None = None) -> str:
        """Record the tag for cls. Conflicting tags raise ConfigurationError."""
        if not isinstance(cls, type):
            raise ConfigurationError(f"Type tag target must be a class, got {cls!r}")
        key = key or cls.__name__
        owner = self._by_key.get(key)
        if owner is not None and owner is not cls:
            raise ConfigurationError(
                f"Type tag {key!r} already registered for {owner.__qualname__}"
            )
        existing = self._by_type.get(cls)
        if existing is not None and existing != key:
            raise ConfigurationError(
                f"{cls.__qualname__} already registered under {existing!r}"
            )
        self._by_type[cls] = key
        self._by_key[key] = cls
        return key

    def key_for(self, cls: type) -> str:
        return self._by_type.get(cls, cls.__name__)

    def is_registered(self, cls: type) -> bool:
        return cls in self._by_type

    def __repr__(self) -> str:
        tags = {cls.__name__: key for cls, key in self._by_type.items()}
        return f"TypeKeys({tags!r})"


class State:
    """Immutable-per-snapshot mapping from scope key to value."""

    __slots__ = ("_data", "_type_keys")

    def __init__(
        self,
        data: Mapping[str, object] | None = None,
        *,
        type_keys: TypeKeys | None = None,
    ) -> None:
        self._data: dict[str, object] = dict(data) if data else {}
        self._type_keys = type_keys if type_keys is not None else TypeKeys()

    @property
    def type_keys(self) -> TypeKeys:
        return self._type_keys

    @overload
    def get(self, key: str) -> object | None: ...

    @overload
    def get(self, key: type[E]) -> E | None: ...

    @overload
    def get(self, key: str, cls: type[E]) -> E | None: ...

    def get(self, key, cls=None):
        """Read a scope by key, by type, or by key and type.

        A value whose runtime type does not match the requested type reads
        as None; a mismatch is never an error.
        """
        if isinstance(key, type):
            cls, key = key, self._type_keys.key_for(key)
        value = self._data.get(key)
        if cls is not None and not isinstance(value, cls):
            return None
        return value

    def copy(self) -> State:
        return State(self._data, type_keys=self._type_keys)

    def update_key(self, key: str | type, value: object) -> None:
        """Insert or overwrite a scope. Only used on unpublished copies."""
        if isinstance(key, type):
            key = self._type_keys.key_for(key)
        self._data[key] = value

    def keys(self) -> frozenset[str]:
        return frozenset(self._data)

    def to_dict(self) -> dict[str, object]:
        return dict(self._data)

    @classmethod
    def merge(cls, base: State, overlay: State | Mapping[str, object]) -> State:
        """New state holding base's entries overwritten by overlay's."""
        merged = base.copy()
        items = overlay.to_dict() if isinstance(overlay, State) else overlay
        for key, value in items.items():
            merged.update_key(key, value)
        return merged

    def __contains__(self, key: object) -> bool:
        if isinstance(key, type):
            key = self._type_keys.key_for(key)
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"State({self._data!r})"
