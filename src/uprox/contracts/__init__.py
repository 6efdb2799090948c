"""Framework contracts: initializer guards, ownership, ERC-1967 proxies, UUPS."""

from .initializable import Initializable, initializer, only_initializing, reinitializer
from .access import OwnableUpgradeable, only_owner
from .proxy import (
    ADMIN_SLOT,
    IMPLEMENTATION_SLOT,
    ERC1967Proxy,
    Proxy,
    ProxyAdmin,
    TransparentUpgradeableProxy,
)
from .uups import UUPSUpgradeable

__all__ = [
    "Initializable",
    "initializer",
    "only_initializing",
    "reinitializer",
    "OwnableUpgradeable",
    "only_owner",
    "ADMIN_SLOT",
    "IMPLEMENTATION_SLOT",
    "ERC1967Proxy",
    "Proxy",
    "ProxyAdmin",
    "TransparentUpgradeableProxy",
    "UUPSUpgradeable",
]
