"""
Initializer guards for contracts deployed behind proxies.

A proxy never runs the implementation's constructor, so setup happens in an
initializer function called through the proxy. These guards make sure it
runs exactly once per version:

    initializer            -> version 1, only if never initialized
    reinitializer(n)       -> version n, only if the current version is < n
    only_initializing      -> helpers callable only from inside the above

Revert reasons match the canonical Solidity implementation so callers can
match on them.
"""

import functools

from uprox.contract import Contract, StorageVar


ALREADY_INITIALIZED = "Initializable: contract is already initialized"
NOT_INITIALIZING = "Initializable: contract is not initializing"
INITIALIZING = "Initializable: contract is initializing"

DISABLED_VERSION = 255


class Initializable(Contract):
    """Tracks the initialized version in proxy storage."""

    _initialized = StorageVar("uint8")
    _initializing = StorageVar("bool")

    def _disable_initializers(self) -> None:
        """Lock the contract against any future (re)initialization."""
        self._require(not self._initializing, INITIALIZING)
        if self._initialized != DISABLED_VERSION:
            self._initialized = DISABLED_VERSION
            self._emit("Initialized", version=DISABLED_VERSION)

    def _get_initialized_version(self) -> int:
        return self._initialized

    def _is_initializing(self) -> bool:
        return self._initializing


def _run_initializer(self, version, fn, args, kwargs):
    self._initialized = version
    self._initializing = True
    result = fn(self, *args, **kwargs)
    self._initializing = False
    self._emit("Initialized", version=version)
    return result


def initializer(fn):
    """Allow `fn` to run once, as version 1."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        is_top_level_call = not self._initializing
        self._require(is_top_level_call and self._initialized < 1, ALREADY_INITIALIZED)
        return _run_initializer(self, 1, fn, args, kwargs)
    return wrapper


def reinitializer(version: int):
    """Allow `fn` to run once, as `version`, if the contract is on an older version."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            self._require(
                not self._initializing and self._initialized < version,
                ALREADY_INITIALIZED,
            )
            return _run_initializer(self, version, fn, args, kwargs)
        return wrapper
    return decorator


def only_initializing(fn):
    """Restrict `fn` to being called from inside an initializer."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        self._require(self._initializing, NOT_INITIALIZING)
        return fn(self, *args, **kwargs)
    return wrapper
