"""
Upgrades — deploy contracts behind proxies and upgrade them safely.

Typical flow:

    chain = Chain()
    upgrades = Upgrades(chain)

    v0 = chain.get_contract_factory("SanctionsUpgradeableV0")
    proxy = upgrades.deploy_proxy(v0)

    v1 = chain.get_contract_factory("SanctionsUpgradeableV1")
    proxy = upgrades.upgrade_proxy(proxy.address, v1)

Before touching a proxy, the new implementation is validated and its
storage layout compared with the current one. Implementations are deployed
once per code version and reused afterwards. Everything deployed is
recorded in the manifest.
"""
from __future__ import annotations

import os
import warnings
from typing import Any, Iterable, Optional, Sequence, Tuple, Type, Union

from uprox.chain import Chain, ContractFactory, ContractHandle
from uprox.config import UpgradesConfig
from uprox.contract import ZERO_ADDRESS, Contract, code_hash, storage_layout
from uprox.contracts.proxy import (
    ADMIN_SLOT,
    IMPLEMENTATION_SLOT,
    ERC1967Proxy,
    Proxy,
    ProxyAdmin,
    TransparentUpgradeableProxy,
)
from uprox.errors import ProxyNotFoundError, UpgradesError
from uprox.layout import assert_upgrade_safe
from uprox.logging_utils import get_logger
from uprox.model import (
    AdminRecord,
    CallData,
    ImplementationRecord,
    Manifest,
    ProxyKind,
    ProxyRecord,
    StorageLayout,
)
from uprox.serialization import load_manifest, save_manifest
from uprox.validation import validate_implementation


logger = get_logger(__name__)

ProxyRef = Union[str, ContractHandle]
UpgradeCall = Union[str, Tuple[str, Sequence[Any]], CallData]
Reference = Union[ProxyRef, ContractFactory, Type[Contract]]


def _address_of(proxy: ProxyRef) -> str:
    return proxy if isinstance(proxy, str) else proxy.address


def to_call_data(call: Optional[UpgradeCall]) -> Optional[CallData]:
    """Normalize a function name, a (name, args) pair or CallData."""
    if call is None or isinstance(call, CallData):
        return call
    if isinstance(call, str):
        return CallData(call)
    function, args = call
    return CallData(function, tuple(args))


class Upgrades:
    """
    Deployment and upgrade operations on one chain.

    Args:
        chain: Chain to operate on
        config: UpgradesConfig (defaults when None)
        manifest: Existing manifest; loaded from config.manifest_path when
            None and the file exists, otherwise a new one
    """

    def __init__(self, chain: Chain, config: Optional[UpgradesConfig] = None,
                 manifest: Optional[Manifest] = None):
        self.chain = chain
        self.config = config or UpgradesConfig(chain_id=chain.chain_id)
        if manifest is None and self.config.manifest_path and os.path.exists(self.config.manifest_path):
            manifest = load_manifest(self.config.manifest_path)
        self.manifest = manifest or Manifest(chain_id=chain.chain_id)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_implementation(self, factory: ContractFactory, kind: Union[ProxyKind, str, None] = None,
                                unsafe_allow: Iterable[str] = ()) -> None:
        """
        Raises:
            ValidationError: If the implementation is not upgrade safe
        """
        report = validate_implementation(
            factory.contract_cls, self._kind(kind), self._unsafe_allow(unsafe_allow)
        )
        report.assert_valid()

    def validate_upgrade(self, reference: Reference, factory: ContractFactory,
                         kind: Union[ProxyKind, str, None] = None, unsafe_allow: Iterable[str] = (),
                         unsafe_skip_storage_check: Optional[bool] = None) -> None:
        """
        Check that `factory` can replace `reference`.

        reference may be a proxy (address or handle), an implementation
        address, a ContractFactory or a contract class.

        Raises:
            ValidationError: If the new implementation is not upgrade safe
            StorageLayoutError: If the storage layouts are incompatible
        """
        self.validate_implementation(factory, kind, unsafe_allow)
        if unsafe_skip_storage_check is None:
            unsafe_skip_storage_check = self.config.unsafe_skip_storage_check
        if unsafe_skip_storage_check:
            warnings.warn(
                f"Potentially unsafe upgrade to {factory.contract_name}: storage layout check skipped",
                UserWarning,
            )
            return
        original_name, original_layout = self._reference_layout(reference)
        assert_upgrade_safe(
            original_layout,
            storage_layout(factory.contract_cls),
            original_name,
            factory.contract_name,
        )

    # =========================================================================
    # DEPLOYMENT
    # =========================================================================

    def deploy_implementation(self, factory: ContractFactory, kind: Union[ProxyKind, str, None] = None,
                              unsafe_allow: Iterable[str] = ()) -> str:
        """Validate and deploy an implementation (or reuse it). Returns its address."""
        self.validate_implementation(factory, kind, unsafe_allow)
        return self._deploy_impl(factory)

    def deploy_proxy(self, factory: ContractFactory, args: Sequence[Any] = (),
                     initializer: Union[str, bool, None] = None,
                     kind: Union[ProxyKind, str, None] = None,
                     unsafe_allow: Iterable[str] = ()) -> ContractHandle:
        """
        Deploy `factory`'s contract behind a new proxy and initialize it.

        Args:
            factory: Implementation factory; its signer deploys and initializes
            args: Arguments for the initializer
            initializer: Initializer name; None means "initialize" if the
                contract has one, False skips initialization
            kind: "transparent" or "uups" (config.default_kind when None)
            unsafe_allow: Validation errors to allow

        Returns:
            Handle to the proxy with the implementation's interface
        """
        kind = self._kind(kind)
        self.validate_implementation(factory, kind, unsafe_allow)
        impl = self._deploy_impl(factory)
        data = self._initializer_data(factory.contract_cls, args, initializer)

        if kind is ProxyKind.UUPS:
            address = self.chain.deploy(ERC1967Proxy, impl, data, sender=factory.signer)
        else:
            admin = self._admin_address(factory.signer)
            address = self.chain.deploy(TransparentUpgradeableProxy, impl, admin, data, sender=factory.signer)

        self.manifest.add_proxy(ProxyRecord(address=address, kind=kind, implementations=[impl]))
        self._save()
        logger.info("Deployed %s proxy for %s at %s", kind.value, factory.contract_name, address)
        return factory.attach(address)

    def prepare_upgrade(self, proxy: ProxyRef, factory: ContractFactory,
                        kind: Union[ProxyKind, str, None] = None, unsafe_allow: Iterable[str] = (),
                        unsafe_skip_storage_check: Optional[bool] = None) -> str:
        """Validate an upgrade and deploy the new implementation, without upgrading."""
        address = _address_of(proxy)
        kind = self._kind(kind) if kind is not None else self._proxy_kind(address)
        self.validate_upgrade(address, factory, kind, unsafe_allow, unsafe_skip_storage_check)
        return self._deploy_impl(factory)

    def upgrade_proxy(self, proxy: ProxyRef, factory: ContractFactory, call: Optional[UpgradeCall] = None,
                      kind: Union[ProxyKind, str, None] = None, unsafe_allow: Iterable[str] = (),
                      unsafe_skip_storage_check: Optional[bool] = None) -> ContractHandle:
        """
        Upgrade a proxy to `factory`'s contract.

        The proxy address and its storage are unchanged; only the code it
        delegates to is replaced.

        Args:
            proxy: Proxy address or handle
            factory: New implementation factory; its signer performs the upgrade
            call: Function to run through the proxy right after the upgrade
            kind: Override the proxy kind recorded in the manifest

        Returns:
            Handle to the same proxy address with the new interface
        """
        address = _address_of(proxy)
        kind = self._kind(kind) if kind is not None else self._proxy_kind(address)
        impl = self.prepare_upgrade(address, factory, kind, unsafe_allow, unsafe_skip_storage_check)
        data = to_call_data(call)
        signer = factory.signer

        if kind is ProxyKind.UUPS:
            if data is None:
                self.chain.call(address, "upgrade_to", impl, sender=signer)
            else:
                self.chain.call(address, "upgrade_to_and_call", impl, data, sender=signer)
        else:
            admin = self.get_admin_address(address)
            if self.chain.has_code(admin):
                if data is None:
                    self.chain.call(admin, "upgrade", address, impl, sender=signer)
                else:
                    self.chain.call(admin, "upgrade_and_call", address, impl, data, sender=signer)
            elif data is None:
                self.chain.call(address, "upgrade_to", impl, sender=signer)
            else:
                self.chain.call(address, "upgrade_to_and_call", impl, data, sender=signer)

        record = self.manifest.get_proxy(address)
        if record is None:
            record = ProxyRecord(address=address, kind=kind)
            self.manifest.add_proxy(record)
        record.implementations.append(impl)
        self._save()
        logger.info("Upgraded proxy %s to %s at %s", address, factory.contract_name, impl)
        return factory.attach(address)

    # =========================================================================
    # ERC-1967 AND ADMIN
    # =========================================================================

    def get_implementation_address(self, proxy: ProxyRef) -> str:
        address = _address_of(proxy)
        self._proxy_kind(address)
        impl = self.chain.storage_at(address).get(IMPLEMENTATION_SLOT)
        if impl is None:
            raise ProxyNotFoundError(f"Contract at {address} has no implementation address")
        return impl

    def get_admin_address(self, proxy: ProxyRef) -> str:
        address = _address_of(proxy)
        self._proxy_kind(address)
        return self.chain.storage_at(address).get(ADMIN_SLOT, ZERO_ADDRESS)

    def change_proxy_admin(self, proxy: ProxyRef, new_admin: str, signer: Optional[str] = None) -> None:
        """Hand a transparent proxy over to a new admin."""
        address = _address_of(proxy)
        admin = self.get_admin_address(address)
        signer = signer or self.chain.default_sender
        if self.chain.has_code(admin):
            self.chain.call(admin, "change_proxy_admin", address, new_admin, sender=signer)
        else:
            self.chain.call(address, "change_admin", new_admin, sender=signer)
        logger.info("Changed admin of proxy %s to %s", address, new_admin)

    def transfer_proxy_admin_ownership(self, new_owner: str, signer: Optional[str] = None) -> None:
        """Transfer ownership of the manifest's ProxyAdmin."""
        admin = self.manifest.admin
        if admin is None:
            raise UpgradesError("No ProxyAdmin was found in the manifest")
        self.chain.call(admin.address, "transfer_ownership", new_owner, sender=signer or admin.owner)
        admin.owner = new_owner
        self._save()
        logger.info("Transferred ownership of ProxyAdmin %s to %s", admin.address, new_owner)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _kind(self, kind: Union[ProxyKind, str, None]) -> ProxyKind:
        if kind is None:
            return self.config.default_kind
        return ProxyKind(kind)

    def _unsafe_allow(self, extra: Iterable[str]) -> Tuple[str, ...]:
        return tuple(self.config.unsafe_allow) + tuple(extra)

    def _proxy_kind(self, address: str) -> ProxyKind:
        record = self.manifest.get_proxy(address)
        # a manifest loaded onto another chain can name addresses without code
        if record is not None and self.chain.has_code(address):
            return record.kind
        if self.chain.has_code(address):
            code = self.chain.code_at(address)
            if issubclass(code, Proxy):
                return code.kind
        raise ProxyNotFoundError(
            f"Contract at {address} doesn't look like an ERC 1967 proxy with a logic contract address"
        )

    def _reference_layout(self, reference: Reference) -> Tuple[str, StorageLayout]:
        if isinstance(reference, ContractFactory):
            return reference.contract_name, storage_layout(reference.contract_cls)
        if isinstance(reference, type):
            return reference.__name__, storage_layout(reference)

        address = _address_of(reference)
        code = self.chain.code_at(address)
        if issubclass(code, Proxy):
            address = self.get_implementation_address(address)
            code = self.chain.code_at(address)
        record = self.manifest.get_impl_by_address(address)
        if record is not None:
            return record.contract, record.layout
        return code.__name__, storage_layout(code)

    def _deploy_impl(self, factory: ContractFactory) -> str:
        version = code_hash(factory.contract_cls)
        existing = self.manifest.impls.get(version)
        if (existing is not None and self.chain.has_code(existing.address)
                and self.chain.code_at(existing.address) is factory.contract_cls):
            logger.debug("Reusing implementation %s at %s", factory.contract_name, existing.address)
            return existing.address

        address = self.chain.deploy(factory.contract_cls, sender=factory.signer)
        self.manifest.add_impl(ImplementationRecord(
            address=address,
            contract=factory.contract_name,
            version=version,
            layout=storage_layout(factory.contract_cls),
        ))
        self._save()
        return address

    def _admin_address(self, owner: str) -> str:
        admin = self.manifest.admin
        if admin is not None and self.chain.has_code(admin.address):
            return admin.address
        address = self.chain.deploy(ProxyAdmin, owner, sender=owner)
        self.manifest.admin = AdminRecord(address=address, owner=owner)
        self._save()
        logger.debug("Deployed ProxyAdmin at %s (owner %s)", address, owner)
        return address

    @staticmethod
    def _initializer_data(contract_cls: Type[Contract], args: Sequence[Any],
                          initializer: Union[str, bool, None]) -> Optional[CallData]:
        if initializer is False:
            return None
        name = initializer or "initialize"
        if name not in contract_cls.abi():
            if initializer is None and not args:
                return None
            raise UpgradesError(f"Contract `{contract_cls.__name__}` does not have a function `{name}`")
        return CallData(name, tuple(args))

    def _save(self) -> None:
        if self.config.manifest_path:
            save_manifest(self.manifest, self.config.manifest_path)
