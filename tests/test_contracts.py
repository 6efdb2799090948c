"""
Tests for the framework contracts.

Tests verify:
    - Initializer, reinitializer and only_initializing guards
    - Ownership
    - Transparent proxy routing and the ProxyAdmin
    - UUPS self-upgrades
"""

import pytest

from uprox.contract import ZERO_ADDRESS, StorageVar, external, view
from uprox.contracts import (
    IMPLEMENTATION_SLOT,
    ERC1967Proxy,
    OwnableUpgradeable,
    ProxyAdmin,
    TransparentUpgradeableProxy,
    UUPSUpgradeable,
    initializer,
    only_owner,
    reinitializer,
)
from uprox.contracts.access import NOT_OWNER
from uprox.contracts.initializable import ALREADY_INITIALIZED, NOT_INITIALIZING
from uprox.contracts.proxy import ADMIN_CANNOT_FALLBACK
from uprox.errors import Revert
from uprox.model import CallData


class FrameworkBox(OwnableUpgradeable):
    _value = StorageVar("uint256")

    @external
    @initializer
    def initialize(self, value):
        self._ownable_init()
        self._value = value

    @external
    @reinitializer(2)
    def initialize_v2(self, value):
        self._value = value

    @external
    def init_outside_initializer(self):
        self._ownable_init()

    @view
    def value(self):
        return self._value

    @external
    @only_owner
    def set_value(self, value):
        self._value = value


class FrameworkBoxV2(FrameworkBox):

    @view
    def version(self):
        return 2


class FrameworkLockedBox(FrameworkBox):

    def constructor(self):
        self._disable_initializers()


class FrameworkUUPSBox(OwnableUpgradeable, UUPSUpgradeable):
    _value = StorageVar("uint256")

    @external
    @initializer
    def initialize(self, value):
        self._ownable_init()
        self._value = value

    @view
    def value(self):
        return self._value

    @only_owner
    def _authorize_upgrade(self, new_implementation):
        pass


class FrameworkUUPSBoxV2(FrameworkUUPSBox):

    @external
    @reinitializer(2)
    def initialize_v2(self, value):
        self._value = value

    @view
    def version(self):
        return 2


def deploy_behind_uups(chain, impl_cls, value=1):
    impl = chain.deploy(impl_cls)
    proxy = chain.deploy(ERC1967Proxy, impl, CallData("initialize", (value,)))
    return impl, chain.get_contract_at(impl_cls, proxy)


class TestInitializable:
    """Initializer guards."""

    def test_initializer_runs_through_proxy(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox, 7)
        assert box.value() == 7
        assert box.owner() == chain.accounts[0]

    def test_initializer_runs_once(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        with pytest.raises(Revert) as exc_info:
            box.initialize(9)
        assert exc_info.value.reason == ALREADY_INITIALIZED
        assert box.value() == 1

    def test_reinitializer_runs_once(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        box.initialize_v2(5)
        assert box.value() == 5
        with pytest.raises(Revert):
            box.initialize_v2(6)
        versions = [log.args["version"] for log in chain.events("Initialized", address=box.address)]
        assert versions == [1, 2]

    def test_only_initializing(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        with pytest.raises(Revert) as exc_info:
            box.init_outside_initializer()
        assert exc_info.value.reason == NOT_INITIALIZING

    def test_disabled_initializers(self, chain):
        impl = chain.get_contract_factory(FrameworkLockedBox).deploy()
        with pytest.raises(Revert) as exc_info:
            impl.initialize(1)
        assert exc_info.value.reason == ALREADY_INITIALIZED
        assert chain.events("Initialized", address=impl.address)[0].args == {"version": 255}

    def test_disabled_implementation_still_initializes_proxy(self, chain):
        """Locking the implementation does not lock proxies using it."""
        _, box = deploy_behind_uups(chain, FrameworkLockedBox, 3)
        assert box.value() == 3


class TestOwnable:
    """Ownership checks and transfers."""

    def test_non_owner_rejected(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        with pytest.raises(Revert) as exc_info:
            box.connect(chain.accounts[1]).set_value(2)
        assert exc_info.value.reason == NOT_OWNER

    def test_transfer_ownership(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        box.transfer_ownership(chain.accounts[1])
        assert box.owner() == chain.accounts[1]
        box.connect(chain.accounts[1]).set_value(4)
        assert box.value() == 4

    def test_transfer_to_zero_address(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        with pytest.raises(Revert):
            box.transfer_ownership(ZERO_ADDRESS)

    def test_renounce(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkBox)
        box.renounce_ownership()
        assert box.owner() == ZERO_ADDRESS


class TestTransparentProxy:
    """Admin routing and upgrades through the ProxyAdmin."""

    @pytest.fixture
    def setup(self, chain):
        owner = chain.accounts[0]
        admin = chain.deploy(ProxyAdmin, owner)
        impl = chain.deploy(FrameworkBox)
        proxy = chain.deploy(TransparentUpgradeableProxy, impl, admin, CallData("initialize", (1,)))
        return {
            "admin": chain.get_contract_at(ProxyAdmin, admin),
            "impl": impl,
            "proxy": chain.get_contract_at(FrameworkBox, proxy),
        }

    def test_users_reach_implementation(self, chain, setup):
        assert setup["proxy"].value() == 1
        assert setup["proxy"].owner() == chain.accounts[0]

    def test_admin_cannot_fallback(self, chain, setup):
        """The admin never reaches implementation functions."""
        with pytest.raises(Revert) as exc_info:
            chain.call(setup["proxy"].address, "value", sender=setup["admin"].address)
        assert exc_info.value.reason == ADMIN_CANNOT_FALLBACK

    def test_users_cannot_reach_admin_functions(self, chain, setup):
        with pytest.raises(Revert):
            chain.call(setup["proxy"].address, "upgrade_to", setup["impl"])

    def test_proxy_admin_views(self, setup):
        proxy = setup["proxy"].address
        assert setup["admin"].get_proxy_implementation(proxy) == setup["impl"]
        assert setup["admin"].get_proxy_admin(proxy) == setup["admin"].address

    def test_upgrade_keeps_state(self, chain, setup):
        proxy = setup["proxy"]
        proxy.set_value(42)
        new_impl = chain.deploy(FrameworkBoxV2)

        setup["admin"].upgrade(proxy.address, new_impl)

        upgraded = chain.get_contract_at(FrameworkBoxV2, proxy.address)
        assert upgraded.value() == 42
        assert upgraded.version() == 2
        assert chain.events("Upgraded", address=proxy.address)[-1].args == {"implementation": new_impl}

    def test_upgrade_and_call(self, chain, setup):
        new_impl = chain.deploy(FrameworkBoxV2)
        setup["admin"].upgrade_and_call(setup["proxy"].address, new_impl, CallData("initialize_v2", (8,)))
        assert setup["proxy"].value() == 8

    def test_only_admin_owner_upgrades(self, chain, setup):
        new_impl = chain.deploy(FrameworkBoxV2)
        with pytest.raises(Revert) as exc_info:
            setup["admin"].connect(chain.accounts[1]).upgrade(setup["proxy"].address, new_impl)
        assert exc_info.value.reason == NOT_OWNER
        assert setup["admin"].get_proxy_implementation(setup["proxy"].address) == setup["impl"]

    def test_upgrade_to_address_without_code(self, chain, setup):
        with pytest.raises(Revert) as exc_info:
            setup["admin"].upgrade(setup["proxy"].address, chain.accounts[5])
        assert exc_info.value.reason == "ERC1967: new implementation is not a contract"

    def test_change_admin(self, chain, setup):
        proxy = setup["proxy"].address
        new_admin = chain.accounts[2]
        setup["admin"].change_proxy_admin(proxy, new_admin)
        assert chain.call(proxy, "admin", sender=new_admin) == new_admin

        new_impl = chain.deploy(FrameworkBoxV2)
        chain.call(proxy, "upgrade_to", new_impl, sender=new_admin)
        assert chain.call(proxy, "implementation", sender=new_admin) == new_impl


class TestUUPS:
    """Upgrades performed by the implementation itself."""

    def test_owner_upgrades(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkUUPSBox, 3)
        new_impl = chain.deploy(FrameworkUUPSBoxV2)
        box.upgrade_to(new_impl)
        upgraded = chain.get_contract_at(FrameworkUUPSBoxV2, box.address)
        assert upgraded.version() == 2
        assert upgraded.value() == 3

    def test_upgrade_to_and_call(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkUUPSBox)
        new_impl = chain.deploy(FrameworkUUPSBoxV2)
        box.upgrade_to_and_call(new_impl, CallData("initialize_v2", (11,)))
        assert box.value() == 11

    def test_non_owner_cannot_upgrade(self, chain):
        impl, box = deploy_behind_uups(chain, FrameworkUUPSBox)
        new_impl = chain.deploy(FrameworkUUPSBoxV2)
        with pytest.raises(Revert) as exc_info:
            box.connect(chain.accounts[1]).upgrade_to(new_impl)
        assert exc_info.value.reason == NOT_OWNER
        assert chain.storage_at(box.address)[IMPLEMENTATION_SLOT] == impl

    def test_rejects_non_uups_implementation(self, chain):
        _, box = deploy_behind_uups(chain, FrameworkUUPSBox)
        plain = chain.deploy(FrameworkBox)
        with pytest.raises(Revert) as exc_info:
            box.upgrade_to(plain)
        assert exc_info.value.reason == "ERC1967Upgrade: new implementation is not UUPS"

    def test_upgrade_must_go_through_proxy(self, chain):
        impl, _ = deploy_behind_uups(chain, FrameworkUUPSBox)
        new_impl = chain.deploy(FrameworkUUPSBoxV2)
        with pytest.raises(Revert) as exc_info:
            chain.call(impl, "upgrade_to", new_impl)
        assert exc_info.value.reason == "Function must be called through delegatecall"

    def test_proxiable_uuid(self, chain):
        impl, box = deploy_behind_uups(chain, FrameworkUUPSBox)
        assert chain.call(impl, "proxiable_uuid") == IMPLEMENTATION_SLOT
        with pytest.raises(Revert):
            box.proxiable_uuid()
