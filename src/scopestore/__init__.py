"""scopestore: an observable, reducer-driven state container for Python."""

from importlib.metadata import version as _version

__version__ = _version("scopestore")

from scopestore.action import Action, action_creator
from scopestore.exceptions import (
    ConfigurationError,
    ReentrancyError,
    StoreError,
    TypeMismatchWarning,
)
from scopestore import filters
from scopestore.listeners import StateSubscription, Subscription
from scopestore.middleware import (
    LoggerMiddleware,
    Middleware,
    ThunkMiddleware,
    thunk,
)
from scopestore.reducer import Reducer, ReducerRegistry, reducer
from scopestore.scheduler import BackgroundScheduler, MarshalingScheduler
from scopestore.selectors import AllState, Key, KeyAndType, Projection, TypeKey
from scopestore.state import State, TypeKeys
from scopestore.store import Phase, Store, create_store

__all__ = [
    "Action",
    "action_creator",
    "State",
    "TypeKeys",
    "Reducer",
    "ReducerRegistry",
    "reducer",
    "Middleware",
    "LoggerMiddleware",
    "ThunkMiddleware",
    "thunk",
    "filters",
    "AllState",
    "Key",
    "TypeKey",
    "KeyAndType",
    "Projection",
    "Subscription",
    "StateSubscription",
    "Store",
    "Phase",
    "create_store",
    "BackgroundScheduler",
    "MarshalingScheduler",
    "StoreError",
    "ConfigurationError",
    "ReentrancyError",
    "TypeMismatchWarning",
]
