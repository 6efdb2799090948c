"""
Tests for the core data objects.

These tests verify:
    - Slot geometry (end, gap detection)
    - Layout lookups
    - Manifest lookups and bookkeeping
"""

from uprox.model import (
    AdminRecord,
    CallData,
    ImplementationRecord,
    Manifest,
    ProxyKind,
    ProxyRecord,
    StorageLayout,
    StorageSlot,
)


class TestStorageSlot:
    """Test StorageSlot objects."""

    def test_single_slot(self):
        """A scalar occupies one slot."""
        s = StorageSlot(label="_owner", type="address", contract="Ownable", slot=2)
        assert s.size == 1
        assert s.end == 3
        assert not s.is_gap

    def test_gap(self):
        """Gaps are recognized by label and span their array length."""
        s = StorageSlot(label="_gap", type="uint256[49]", contract="Ownable", slot=3, size=49)
        assert s.is_gap
        assert s.end == 52

    def test_double_underscore_gap(self):
        s = StorageSlot(label="__gap", type="uint256[50]", contract="C", slot=0, size=50)
        assert s.is_gap


class TestStorageLayout:
    """Test StorageLayout lookups."""

    def build_layout(self):
        return StorageLayout(slots=[
            StorageSlot("_a", "uint256", "Base", 0),
            StorageSlot("_gap", "uint256[10]", "Base", 1, 10),
            StorageSlot("_b", "address", "Child", 11),
            StorageSlot("_gap", "uint256[5]", "Child", 12, 5),
        ])

    def test_get_by_label(self):
        layout = self.build_layout()
        assert layout.get("_b").slot == 11
        assert layout.get("_missing") is None

    def test_get_disambiguates_by_contract(self):
        layout = self.build_layout()
        assert layout.get("_gap").contract == "Base"
        assert layout.get("_gap", "Child").slot == 12

    def test_slot_at(self):
        layout = self.build_layout()
        assert layout.slot_at(11).label == "_b"
        assert layout.slot_at(5) is None

    def test_total_size(self):
        assert self.build_layout().total_size == 17
        assert StorageLayout().total_size == 0


class TestCallData:
    """Test CallData values."""

    def test_defaults_to_no_args(self):
        assert CallData("initialize").args == ()

    def test_is_hashable(self):
        assert CallData("f", (1, 2)) == CallData("f", (1, 2))
        assert len({CallData("f", (1,)), CallData("f", (1,))}) == 1


class TestManifest:
    """Test Manifest bookkeeping."""

    def test_empty_manifest(self):
        m = Manifest(chain_id=31337)
        assert m.admin is None
        assert m.proxies == []
        assert m.impls == {}

    def test_add_and_get_proxy(self):
        m = Manifest(chain_id=1)
        m.add_proxy(ProxyRecord(address="0xp", kind=ProxyKind.UUPS, implementations=["0xi"]))
        assert m.get_proxy("0xp").kind is ProxyKind.UUPS
        assert m.get_proxy("0xother") is None

    def test_add_proxy_ignores_duplicates(self):
        m = Manifest(chain_id=1)
        m.add_proxy(ProxyRecord(address="0xp", kind=ProxyKind.TRANSPARENT))
        m.add_proxy(ProxyRecord(address="0xp", kind=ProxyKind.UUPS))
        assert len(m.proxies) == 1
        assert m.proxies[0].kind is ProxyKind.TRANSPARENT

    def test_impl_lookup_by_address(self):
        m = Manifest(chain_id=1)
        m.add_impl(ImplementationRecord(address="0xi", contract="Box", version="0xv1"))
        assert m.impls["0xv1"].contract == "Box"
        assert m.get_impl_by_address("0xi").version == "0xv1"
        assert m.get_impl_by_address("0xnope") is None

    def test_admin_record(self):
        m = Manifest(chain_id=1, admin=AdminRecord(address="0xa", owner="0xo"))
        assert m.admin.owner == "0xo"
