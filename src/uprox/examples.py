"""
Example upgradeable contract: an on-chain sanctions list.

Two versions of the same contract:
    - SanctionsUpgradeableV0: owner-managed list of sanctioned addresses
    - SanctionsUpgradeableV1: same storage, plus a counter carved out of
      the storage gap, and version_number() == 1

deploy_sanctions_v0_to_v1 deploys V0 behind a proxy and upgrades it to V1.
"""
from typing import Sequence

from uprox.chain import Chain, ContractHandle
from uprox.contract import StorageVar, external, view
from uprox.contracts import OwnableUpgradeable, initializer, only_owner, reinitializer
from uprox.upgrades import Upgrades


COUNT_UNDERFLOW = "SanctionsUpgradeableV1: sanctioned count underflow"


class SanctionsUpgradeableV0(OwnableUpgradeable):
    """First version of the sanctions list."""

    # the constructor only locks the implementation itself
    unsafe_allow = frozenset({"constructor"})

    _sanctioned = StorageVar("mapping(address => bool)")
    _gap = StorageVar("uint256[50]")

    def constructor(self) -> None:
        self._disable_initializers()

    @external
    @initializer
    def initialize(self) -> None:
        self._ownable_init()

    @view
    def name(self) -> str:
        return "Sanctions"

    @view
    def version_number(self) -> int:
        return 0

    @external
    @only_owner
    def add_to_sanctions_list(self, new_sanctions: Sequence[str]) -> None:
        for addr in new_sanctions:
            self._sanctioned[addr] = True
        self._emit("SanctionedAddressesAdded", addrs=list(new_sanctions))

    @external
    @only_owner
    def remove_from_sanctions_list(self, remove_sanctions: Sequence[str]) -> None:
        for addr in remove_sanctions:
            self._sanctioned[addr] = False
        self._emit("SanctionedAddressesRemoved", addrs=list(remove_sanctions))

    @view
    def is_sanctioned(self, addr: str) -> bool:
        return self._sanctioned.get(addr, False)


class SanctionsUpgradeableV1(OwnableUpgradeable):
    """
    Second version of the sanctions list.

    Adds a count of sanctioned addresses. The counter takes the first slot
    of V0's gap, so the gap shrinks from 50 to 49 slots. Proxies upgraded
    from V0 should call initialize_v1 with the number of addresses already
    sanctioned.
    """

    unsafe_allow = frozenset({"constructor"})

    _sanctioned = StorageVar("mapping(address => bool)")
    _sanctioned_count = StorageVar("uint256")
    _gap = StorageVar("uint256[49]")

    def constructor(self) -> None:
        self._disable_initializers()

    @external
    @initializer
    def initialize(self) -> None:
        self._ownable_init()

    @external
    @reinitializer(2)
    def initialize_v1(self, sanctioned_count: int) -> None:
        self._sanctioned_count = sanctioned_count

    @view
    def name(self) -> str:
        return "Sanctions"

    @view
    def version_number(self) -> int:
        return 1

    @external
    @only_owner
    def add_to_sanctions_list(self, new_sanctions: Sequence[str]) -> None:
        for addr in new_sanctions:
            if not self._sanctioned.get(addr, False):
                self._sanctioned[addr] = True
                self._sanctioned_count += 1
        self._emit("SanctionedAddressesAdded", addrs=list(new_sanctions))

    @external
    @only_owner
    def remove_from_sanctions_list(self, remove_sanctions: Sequence[str]) -> None:
        for addr in remove_sanctions:
            if self._sanctioned.get(addr, False):
                # uint256: reverts when the count was never initialized
                self._require(self._sanctioned_count > 0, COUNT_UNDERFLOW)
                self._sanctioned[addr] = False
                self._sanctioned_count -= 1
        self._emit("SanctionedAddressesRemoved", addrs=list(remove_sanctions))

    @view
    def is_sanctioned(self, addr: str) -> bool:
        return self._sanctioned.get(addr, False)

    @view
    def sanctioned_count(self) -> int:
        return self._sanctioned_count


def deploy_sanctions_v0_to_v1(chain: Chain, upgrades=None) -> ContractHandle:
    """
    Deploy SanctionsUpgradeableV0 behind a proxy, then upgrade it to V1.

    initialize_v1 runs in the upgrade transaction, so version 2 is taken
    before anyone else can call it.

    Returns:
        Handle to the proxy with the V1 interface
    """
    upgrades = upgrades or Upgrades(chain)
    sanctions_v0 = chain.get_contract_factory("SanctionsUpgradeableV0")
    proxy = upgrades.deploy_proxy(sanctions_v0)

    sanctions_v1 = chain.get_contract_factory("SanctionsUpgradeableV1")
    # a freshly deployed V0 has nothing sanctioned yet
    return upgrades.upgrade_proxy(proxy.address, sanctions_v1, call=("initialize_v1", [0]))
