"""Single-owner access control for upgradeable contracts."""

import functools

from uprox.contract import ZERO_ADDRESS, StorageVar, external, view
from uprox.contracts.initializable import Initializable, only_initializing


NOT_OWNER = "Ownable: caller is not the owner"


def only_owner(fn):
    """Restrict `fn` to the current owner."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        self._check_owner()
        return fn(self, *args, **kwargs)
    return wrapper


class OwnableUpgradeable(Initializable):
    """
    Owner stored in proxy storage and set from the initializer.

    The gap reserves slots so later versions of this base can add
    variables without shifting the storage of contracts that inherit it.
    """

    _owner = StorageVar("address")
    _gap = StorageVar("uint256[49]")

    @only_initializing
    def _ownable_init(self) -> None:
        self._transfer_ownership(self.msg_sender)

    @view
    def owner(self) -> str:
        return self._owner

    @external
    @only_owner
    def renounce_ownership(self) -> None:
        self._transfer_ownership(ZERO_ADDRESS)

    @external
    @only_owner
    def transfer_ownership(self, new_owner: str) -> None:
        self._require(new_owner != ZERO_ADDRESS, "Ownable: new owner is the zero address")
        self._transfer_ownership(new_owner)

    def _check_owner(self) -> None:
        self._require(self._owner == self.msg_sender, NOT_OWNER)

    def _transfer_ownership(self, new_owner: str) -> None:
        previous_owner = self._owner
        self._owner = new_owner
        self._emit("OwnershipTransferred", previous_owner=previous_owner, new_owner=new_owner)
