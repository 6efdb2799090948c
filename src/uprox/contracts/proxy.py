"""
ERC-1967 proxies and the ProxyAdmin.

The implementation and admin addresses are kept at fixed, pseudo-random
storage keys (ERC-1967) so they can never collide with the implementation's
own variables, which are keyed by slot number.

Proxies:
    - ERC1967Proxy: forwards every call; upgrades are done by the
      implementation itself (UUPS)
    - TransparentUpgradeableProxy: the admin can only reach the proxy's
      admin functions, everyone else is always forwarded
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from uprox.contract import ZERO_ADDRESS, Contract, external, view
from uprox.contracts.access import OwnableUpgradeable, only_owner
from uprox.errors import Revert
from uprox.model import CallData, ProxyKind


# keccak256("eip1967.proxy.implementation") - 1
IMPLEMENTATION_SLOT = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
# keccak256("eip1967.proxy.admin") - 1
ADMIN_SLOT = "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"

ADMIN_CANNOT_FALLBACK = "TransparentUpgradeableProxy: admin cannot fallback to proxy target"


class ERC1967Upgrade(Contract):
    """Reads and writes the ERC-1967 slots of the executing address."""

    def _get_implementation(self) -> str:
        return self._storage.get(IMPLEMENTATION_SLOT, ZERO_ADDRESS)

    def _set_implementation(self, new_implementation: str) -> None:
        self._require(
            self.chain.has_code(new_implementation),
            "ERC1967: new implementation is not a contract",
        )
        self._storage[IMPLEMENTATION_SLOT] = new_implementation

    def _upgrade_to(self, new_implementation: str) -> None:
        self._set_implementation(new_implementation)
        self._emit("Upgraded", implementation=new_implementation)

    def _upgrade_to_and_call(self, new_implementation: str, data: Optional[CallData] = None) -> Any:
        self._upgrade_to(new_implementation)
        if data is not None:
            return self.chain.delegate(self._ctx, new_implementation, data.function, data.args)
        return None

    def _get_admin(self) -> str:
        return self._storage.get(ADMIN_SLOT, ZERO_ADDRESS)

    def _change_admin(self, new_admin: str) -> None:
        self._require(new_admin != ZERO_ADDRESS, "ERC1967: new admin is the zero address")
        previous_admin = self._get_admin()
        self._storage[ADMIN_SLOT] = new_admin
        self._emit("AdminChanged", previous_admin=previous_admin, new_admin=new_admin)


class Proxy(ERC1967Upgrade):
    """Base for contracts whose calls are routed to other code."""

    kind: ProxyKind

    @classmethod
    def route(cls, storage: Dict[Any, Any], sender: str, function: str) -> Optional[str]:
        """
        Decide which code handles a call.

        Returns:
            Address of the code to delegate to, or None to run the
            proxy's own function
        """
        return storage.get(IMPLEMENTATION_SLOT, ZERO_ADDRESS)


class ERC1967Proxy(Proxy):
    """Forwards all calls; the upgrade logic lives in the implementation (UUPS)."""

    kind = ProxyKind.UUPS

    def constructor(self, logic: str, data: Optional[CallData] = None) -> None:
        self._upgrade_to_and_call(logic, data)


class TransparentUpgradeableProxy(ERC1967Proxy):
    """
    Proxy upgradeable by its admin.

    ARCHITECTURAL RULE:
        The admin can never call the implementation and nobody else can
        call the admin functions. This removes selector clashes between
        the two.
    """

    kind = ProxyKind.TRANSPARENT

    ADMIN_FUNCTIONS = frozenset({
        "admin",
        "implementation",
        "change_admin",
        "upgrade_to",
        "upgrade_to_and_call",
    })

    def constructor(self, logic: str, admin: str, data: Optional[CallData] = None) -> None:
        super().constructor(logic, data)
        self._change_admin(admin)

    @classmethod
    def route(cls, storage: Dict[Any, Any], sender: str, function: str) -> Optional[str]:
        if sender == storage.get(ADMIN_SLOT):
            if function in cls.ADMIN_FUNCTIONS:
                return None
            raise Revert(ADMIN_CANNOT_FALLBACK)
        return super().route(storage, sender, function)

    @view
    def admin(self) -> str:
        return self._get_admin()

    @view
    def implementation(self) -> str:
        return self._get_implementation()

    @external
    def change_admin(self, new_admin: str) -> None:
        self._change_admin(new_admin)

    @external
    def upgrade_to(self, new_implementation: str) -> None:
        self._upgrade_to(new_implementation)

    @external
    def upgrade_to_and_call(self, new_implementation: str, data: CallData) -> Any:
        return self._upgrade_to_and_call(new_implementation, data)


class ProxyAdmin(OwnableUpgradeable):
    """Owner-controlled admin for transparent proxies."""

    def constructor(self, initial_owner: str) -> None:
        self._transfer_ownership(initial_owner)

    @view
    def get_proxy_implementation(self, proxy: str) -> str:
        return self.chain.call(proxy, "implementation", sender=self.address)

    @view
    def get_proxy_admin(self, proxy: str) -> str:
        return self.chain.call(proxy, "admin", sender=self.address)

    @external
    @only_owner
    def change_proxy_admin(self, proxy: str, new_admin: str) -> None:
        self.chain.call(proxy, "change_admin", new_admin, sender=self.address)

    @external
    @only_owner
    def upgrade(self, proxy: str, implementation: str) -> None:
        self.chain.call(proxy, "upgrade_to", implementation, sender=self.address)

    @external
    @only_owner
    def upgrade_and_call(self, proxy: str, implementation: str, data: CallData) -> Any:
        return self.chain.call(proxy, "upgrade_to_and_call", implementation, data, sender=self.address)
