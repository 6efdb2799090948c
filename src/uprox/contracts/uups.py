"""
UUPS: the upgrade function lives in the implementation, not the proxy.

Each implementation must keep an upgrade function, or the proxy can never
be upgraded again. Before switching, the new implementation is asked for
its proxiable UUID to make sure it is UUPS-aware.
"""
from __future__ import annotations

from typing import Any, Optional

from uprox.contract import StorageVar, external, view
from uprox.contracts.initializable import Initializable
from uprox.contracts.proxy import IMPLEMENTATION_SLOT, ERC1967Upgrade
from uprox.errors import Revert
from uprox.model import CallData


class UUPSUpgradeable(Initializable, ERC1967Upgrade):
    """Mixin giving an implementation its own upgrade functions."""

    _gap = StorageVar("uint256[50]")

    @view
    def proxiable_uuid(self) -> str:
        self._require(
            self.address == self._ctx.code_address,
            "UUPSUpgradeable: must not be called through delegatecall",
        )
        return IMPLEMENTATION_SLOT

    @external
    def upgrade_to(self, new_implementation: str) -> None:
        self._only_proxy()
        self._authorize_upgrade(new_implementation)
        self._upgrade_to_and_call_uups(new_implementation, None)

    @external
    def upgrade_to_and_call(self, new_implementation: str, data: CallData) -> Any:
        self._only_proxy()
        self._authorize_upgrade(new_implementation)
        return self._upgrade_to_and_call_uups(new_implementation, data)

    def _authorize_upgrade(self, new_implementation: str) -> None:
        """Override to restrict who may upgrade (typically only_owner)."""
        raise NotImplementedError(f"{type(self).__name__} must implement _authorize_upgrade")

    def _only_proxy(self) -> None:
        self._require(
            self.address != self._ctx.code_address,
            "Function must be called through delegatecall",
        )
        self._require(
            self._get_implementation() == self._ctx.code_address,
            "Function must be called through active proxy",
        )

    def _upgrade_to_and_call_uups(self, new_implementation: str, data: Optional[CallData]) -> Any:
        self._require(
            self.chain.has_code(new_implementation),
            "ERC1967: new implementation is not a contract",
        )
        try:
            slot = self.chain.call(new_implementation, "proxiable_uuid", sender=self.address)
        except Revert:
            raise Revert("ERC1967Upgrade: new implementation is not UUPS") from None
        self._require(slot == IMPLEMENTATION_SLOT, "ERC1967Upgrade: unsupported proxiableUUID")
        return self._upgrade_to_and_call(new_implementation, data)
