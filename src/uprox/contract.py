"""
Contract base class, storage variables and ABI markers.

Contract code is ordinary Python classes. State lives outside the instance,
in the storage dict of whatever address the code is executing for: the
contract's own address for a plain call, the proxy's address when the call
was delegated. This is what makes an implementation swappable behind a
proxy without losing state.

Example:
    class Counter(Contract):
        _count = StorageVar("uint256")

        @view
        def count(self):
            return self._count

        @external
        def increment(self):
            self._count += 1
"""
from __future__ import annotations

import functools
import hashlib
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type

from uprox.errors import ContractNotFoundError, Revert
from uprox.model import StorageLayout, StorageSlot


ZERO_ADDRESS = "0x" + "0" * 40

_ARRAY_RE = re.compile(r"^(?P<base>.+)\[(?P<length>\d+)\]$")

_REGISTRY: Dict[str, Type["Contract"]] = {}


def type_size(type_: str) -> int:
    """Number of storage slots a declared type occupies."""
    m = _ARRAY_RE.match(type_)
    if m:
        return int(m.group("length")) * type_size(m.group("base"))
    return 1


def zero_value(type_: str) -> Any:
    """Value read from a storage variable that was never written."""
    if type_.startswith("mapping("):
        return {}
    if _ARRAY_RE.match(type_) or type_.endswith("[]"):
        return []
    if type_.startswith(("uint", "int")):
        return 0
    if type_ == "bool":
        return False
    if type_ == "address":
        return ZERO_ADDRESS
    if type_ in ("string", "bytes"):
        return ""
    if type_.startswith("bytes"):
        return "0x" + "00" * int(type_[len("bytes"):])
    return None


class StorageVar:
    """
    Declares a persistent state variable on a contract class.

    The slot is not fixed on the descriptor: it depends on the concrete
    class being executed, because inherited variables shift with the
    inheritance chain. It is looked up from storage_layout(type(instance)).
    """

    def __init__(self, type_: str, renamed_from: Optional[str] = None):
        self.type = type_
        self.renamed_from = renamed_from
        self.name: Optional[str] = None
        self.owner: Optional[type] = None

    def __set_name__(self, owner, name):
        self.owner = owner
        self.name = name

    def _slot(self, instance) -> int:
        return _slot_index(type(instance))[(self.owner.__name__, self.name)]

    def __get__(self, instance, owner):
        if instance is None:
            return self
        key = self._slot(instance)
        if key not in instance._storage:
            value = zero_value(self.type)
            # mutable containers are written back so in-place updates persist
            if isinstance(value, (dict, list)):
                instance._storage[key] = value
            return value
        return instance._storage[key]

    def __set__(self, instance, value):
        instance._storage[self._slot(instance)] = value


@functools.lru_cache(maxsize=None)
def storage_layout(cls: type) -> StorageLayout:
    """
    Compute the storage layout of a contract class.

    Walks the MRO base-first (the order Solidity linearizes inheritance)
    and assigns consecutive slots in declaration order.
    """
    slots = []
    next_slot = 0
    for klass in reversed(cls.__mro__):
        for attr in vars(klass).values():
            if isinstance(attr, StorageVar):
                size = type_size(attr.type)
                slots.append(StorageSlot(
                    label=attr.name,
                    type=attr.type,
                    contract=klass.__name__,
                    slot=next_slot,
                    size=size,
                    renamed_from=attr.renamed_from,
                ))
                next_slot += size
    return StorageLayout(slots=slots)


@functools.lru_cache(maxsize=None)
def _slot_index(cls: type) -> Dict[Tuple[str, str], int]:
    return {(s.contract, s.label): s.slot for s in storage_layout(cls).slots}


def external(fn):
    """Mark a method as a state-changing ABI function."""
    fn.__abi__ = "nonpayable"
    return fn


def view(fn):
    """Mark a method as a read-only ABI function."""
    fn.__abi__ = "view"
    return fn


@dataclass
class CallContext:
    """
    Execution context of one call frame.

    Properties:
        chain: The Chain executing the call
        address: Address whose storage is in use (address(this))
        code_address: Address the executing code was deployed at
        sender: msg.sender
        storage: Storage dict of `address`

    For a delegated call, address is the proxy and code_address the
    implementation.
    """

    chain: Any
    address: str
    code_address: str
    sender: str
    storage: Dict[Any, Any]


class Contract:
    """
    Base class for all contract code.

    Subclasses are registered by class name, the way compiled artifacts
    are looked up by contract name.

    Class attributes:
        unsafe_allow: Validation errors this contract opts out of
            (e.g. {"constructor"})
    """

    unsafe_allow: FrozenSet[str] = frozenset()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        _REGISTRY[cls.__name__] = cls

    def __init__(self, ctx: CallContext):
        self._ctx = ctx
        self._storage = ctx.storage

    @property
    def address(self) -> str:
        return self._ctx.address

    @property
    def msg_sender(self) -> str:
        return self._ctx.sender

    @property
    def chain(self):
        return self._ctx.chain

    def _require(self, condition: bool, reason: str) -> None:
        if not condition:
            raise Revert(reason)

    def _emit(self, event: str, **args) -> None:
        self._ctx.chain.emit(self._ctx.address, event, args)

    @classmethod
    def abi(cls) -> Dict[str, str]:
        """Return {function name: "view" | "nonpayable"}."""
        entries = {}
        for name in dir(cls):
            if name.startswith("__"):
                continue
            kind = getattr(getattr(cls, name), "__abi__", None)
            if kind is not None:
                entries[name] = kind
        return entries


def get_contract_class(name: str) -> Type[Contract]:
    """
    Look up a contract class by name.

    Raises:
        ContractNotFoundError: If no contract with that name is defined
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ContractNotFoundError(f"Artifact for contract `{name}` not found") from None


def code_hash(cls: type) -> str:
    """Stable identifier of an implementation: its name, layout and ABI."""
    h = hashlib.sha256()
    h.update(f"{cls.__module__}.{cls.__qualname__}".encode())
    for s in storage_layout(cls).slots:
        h.update(f"{s.contract}:{s.label}:{s.type}:{s.slot}".encode())
    for name, kind in sorted(cls.abi().items()):
        h.update(f"{name}:{kind}".encode())
    return "0x" + h.hexdigest()
