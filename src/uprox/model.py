"""
Core Data Objects

Defines the plain data structures shared by the runtime and the tooling:
    - Storage slots and layouts (what an implementation persists, and where)
    - Call data (a function call forwarded after an upgrade)
    - Deployment records (implementations, proxies, the proxy admin)
    - The manifest (everything deployed on one chain)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about how contract code executes
        - Are fully serializable
        - Represent deployments, not behavior
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ProxyKind(Enum):
    """Proxy patterns supported by the upgrades tooling."""
    TRANSPARENT = "transparent"
    UUPS = "uups"


GAP_LABELS = ("_gap", "__gap")


@dataclass(frozen=True)
class StorageSlot:
    """
    One state variable in a contract's storage layout.

    Properties:
        label: Variable name as declared (e.g., "_owner")
        type: Declared type string (e.g., "address", "uint256[49]")
        contract: Name of the contract that declares the variable
        slot: First storage slot the variable occupies
        size: Number of slots occupied (arrays occupy one slot per element)
        renamed_from: Previous label, if the variable was renamed on purpose

    IMPORTANT:
        Slot numbers are assigned by walking the inheritance chain
        base-first. Two implementations are compatible only if every
        original variable keeps its slot and type.
    """

    label: str
    type: str
    contract: str
    slot: int
    size: int = 1
    renamed_from: Optional[str] = None

    @property
    def end(self) -> int:
        return self.slot + self.size

    @property
    def is_gap(self) -> bool:
        return self.label in GAP_LABELS


@dataclass
class StorageLayout:
    """Ordered storage variables of a contract, base contracts first."""

    slots: List[StorageSlot] = field(default_factory=list)

    def get(self, label: str, contract: Optional[str] = None) -> Optional[StorageSlot]:
        """
        Retrieve a variable by label.

        Args:
            label: Variable label
            contract: Declaring contract, to disambiguate repeated labels (gaps)

        Returns:
            StorageSlot or None if not found
        """
        for s in self.slots:
            if s.label == label and (contract is None or s.contract == contract):
                return s
        return None

    def slot_at(self, slot: int) -> Optional[StorageSlot]:
        """Return the variable starting exactly at `slot`, if any."""
        for s in self.slots:
            if s.slot == slot:
                return s
        return None

    @property
    def total_size(self) -> int:
        if not self.slots:
            return 0
        return max(s.end for s in self.slots)


@dataclass(frozen=True)
class CallData:
    """
    A function call to run on a proxy right after its implementation changes.

    Example:
        CallData("initialize_v1", (3,)) runs initialize_v1(3) through the proxy.
    """

    function: str
    args: Tuple[Any, ...] = ()


@dataclass
class ImplementationRecord:
    """
    A deployed implementation contract.

    Properties:
        address: Where the implementation code lives
        contract: Contract name
        version: Code hash identifying this exact implementation
        layout: Storage layout, kept for later upgrade checks
    """

    address: str
    contract: str
    version: str
    layout: StorageLayout = field(default_factory=StorageLayout)


@dataclass
class ProxyRecord:
    """A deployed proxy and the implementations it has pointed to, oldest first."""

    address: str
    kind: ProxyKind
    implementations: List[str] = field(default_factory=list)


@dataclass
class AdminRecord:
    """The ProxyAdmin shared by transparent proxies of one manifest."""

    address: str
    owner: str


@dataclass
class Manifest:
    """
    Root record of everything the tooling deployed on one chain.

    INVARIANTS:
        - Each implementation version is deployed at most once
        - Every proxy's implementations refer to addresses in `impls`
        - Transparent proxies share `admin`
    """

    chain_id: int
    admin: Optional[AdminRecord] = None
    proxies: List[ProxyRecord] = field(default_factory=list)
    impls: Dict[str, ImplementationRecord] = field(default_factory=dict)

    def get_proxy(self, address: str) -> Optional[ProxyRecord]:
        for proxy in self.proxies:
            if proxy.address == address:
                return proxy
        return None

    def get_impl_by_address(self, address: str) -> Optional[ImplementationRecord]:
        for impl in self.impls.values():
            if impl.address == address:
                return impl
        return None

    def add_proxy(self, record: ProxyRecord) -> None:
        if self.get_proxy(record.address) is None:
            self.proxies.append(record)

    def add_impl(self, record: ImplementationRecord) -> None:
        self.impls[record.version] = record
