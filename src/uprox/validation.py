"""
Implementation validation — is a contract safe to put behind a proxy?

Checks:
    - The class is contract code
    - No user-defined constructor (proxies never run it); contracts that
      only use it to disable initializers opt out with
      unsafe_allow = {"constructor"}
    - UUPS proxies need an implementation that can upgrade itself
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Iterable, List

from uprox.contract import Contract
from uprox.contracts.uups import UUPSUpgradeable
from uprox.errors import ValidationError
from uprox.model import ProxyKind


FRAMEWORK_MODULE_PREFIX = "uprox.contracts"


@dataclass
class ValidationReport:
    """Errors found in an implementation, and unsafe items explicitly allowed."""

    contract: str
    errors: List[str] = field(default_factory=list)
    allowed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def assert_valid(self) -> None:
        """
        Raise ValidationError if there are errors; warn about allowed items.

        Raises:
            ValidationError: If the implementation is not upgrade safe
        """
        if self.errors:
            raise ValidationError(self.contract, self.errors)
        for item in self.allowed:
            warnings.warn(f"Potentially unsafe deployment of {self.contract}: {item}", UserWarning)


def validate_implementation(contract_cls, kind: ProxyKind = ProxyKind.TRANSPARENT,
                            unsafe_allow: Iterable[str] = ()) -> ValidationReport:
    """
    Validate an implementation class for use behind a proxy of `kind`.

    Returns a ValidationReport; nothing is raised here.
    """
    name = getattr(contract_cls, "__name__", repr(contract_cls))
    report = ValidationReport(contract=name)

    if not (isinstance(contract_cls, type) and issubclass(contract_cls, Contract)):
        report.errors.append(f"`{name}` is not a contract")
        return report

    allow = set(contract_cls.unsafe_allow) | set(unsafe_allow)

    for klass in contract_cls.__mro__:
        if "constructor" not in vars(klass) or klass.__module__.startswith(FRAMEWORK_MODULE_PREFIX):
            continue
        if "constructor" in allow:
            report.allowed.append(f"`{klass.__name__}` has a constructor")
        else:
            report.errors.append(
                f"Contract `{klass.__name__}` has a constructor\n"
                f"    > Define an initializer instead, or allow it with unsafe_allow=(\"constructor\",)"
            )

    if kind is ProxyKind.UUPS and not issubclass(contract_cls, UUPSUpgradeable):
        if "missing-public-upgradeto" in allow:
            report.allowed.append("missing public upgrade_to function")
        else:
            report.errors.append(
                f"Contract `{name}` is not upgrade safe for UUPS proxies: missing public upgrade_to function\n"
                f"    > Inherit UUPSUpgradeable"
            )

    return report
