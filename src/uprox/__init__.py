"""
Upgradeable Contract Proxy Package (uprox)

An in-memory model of upgradeable smart contracts: contract code written as
Python classes, a chain that executes it, ERC-1967 proxies that delegate to
swappable implementations, and the tooling that deploys and upgrades them
safely.

ARCHITECTURAL GUARANTEE:
------------------------
Contract code never holds state. All state lives in the storage of the
address being executed for, so an upgrade replaces behavior and keeps data.

Layers:
    - model / contract / chain: data objects and execution
    - contracts: framework contracts (initializers, ownership, proxies)
    - layout / validation: read-only safety reports
    - upgrades: deploy_proxy / upgrade_proxy and friends
"""

__version__ = "0.1.0"
