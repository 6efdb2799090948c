"""
Exceptions raised by the proxy runtime and the upgrades API.

Two families:
    - Revert: a contract-level failure (require/revert inside contract code).
      The chain rolls the transaction back before it propagates.
    - UpgradesError: the tooling refused an operation (unsafe layout,
      invalid implementation, unknown artifact or proxy).
"""

from typing import List


class Revert(Exception):
    """Raised when contract code reverts."""

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


class NoCodeError(Exception):
    """Raised when calling an address that has no contract code."""
    pass


class UpgradesError(Exception):
    """Base class for errors raised by the upgrades tooling."""
    pass


class ContractNotFoundError(UpgradesError):
    """Raised when no contract class is registered under a name."""
    pass


class ProxyNotFoundError(UpgradesError):
    """Raised when an address is not a proxy known to the manifest or chain."""
    pass


class ValidationError(UpgradesError):
    """Raised when an implementation contract is not upgrade safe."""

    def __init__(self, contract: str, errors: List[str]):
        self.contract = contract
        self.errors = list(errors)
        lines = [f"Contract `{contract}` is not upgrade safe"]
        lines.extend(f"  - {e}" for e in self.errors)
        super().__init__("\n".join(lines))


class StorageLayoutError(UpgradesError):
    """Raised when a new implementation's storage layout is incompatible."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class ConfigError(UpgradesError):
    """Raised for invalid configuration."""
    pass
