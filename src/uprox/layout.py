"""
Storage Layout Compatibility — compare an implementation with its upgrade.

A proxy keeps its storage across upgrades, so the new implementation must
read every existing variable from the slot the old one wrote it to.

Rules:
    - Every original variable keeps its slot and its type
    - Renames are errors unless declared with renamed_from
    - New variables go after the original layout, or inside a gap
    - A gap that gives up slots must shrink so that it still ends
      where it used to

IMPORTANT: This module does NOT modify layouts. It only produces reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from uprox.errors import StorageLayoutError
from uprox.model import StorageLayout, StorageSlot


@dataclass
class LayoutChange:
    """
    One incompatibility between two layouts.

    kind is one of: delete, shift, rename, replace, typechange, insert, gap
    """

    kind: str
    original: Optional[StorageSlot] = None
    updated: Optional[StorageSlot] = None

    def explain(self) -> str:
        o, u = self.original, self.updated
        if self.kind == "delete":
            return f"Deleted `{o.label}`\n    > Keep the variable even if unused"
        if self.kind == "shift":
            return f"Layout changed for `{o.label}` ({o.type})\n    - Slot changed from {o.slot} to {u.slot}"
        if self.kind == "rename":
            return (f"Renamed `{o.label}` to `{u.label}`\n"
                    f"    > Declare renamed_from=\"{o.label}\" if the rename is intentional")
        if self.kind == "replace":
            return f"Replaced `{o.label}` with `{u.label}` of incompatible type\n    - Bad upgrade from {o.type} to {u.type}"
        if self.kind == "typechange":
            return f"Upgraded `{o.label}` to an incompatible type\n    - Bad upgrade from {o.type} to {u.type}"
        if self.kind == "insert":
            return (f"Inserted `{u.label}`\n"
                    f"    > New variables should be placed after all existing inherited variables")
        if self.kind == "gap":
            return (f"Bad storage gap resize for `{o.contract}.{o.label}`\n"
                    f"    > Size of {o.type} should decrease by the slots taken by new variables before it")
        return self.kind


@dataclass
class LayoutReport:
    """Result of comparing an original layout with an updated one."""

    original_contract: str = ""
    updated_contract: str = ""
    changes: List[LayoutChange] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.changes

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)

    def explain(self) -> str:
        header = "New storage layout is incompatible"
        if self.original_contract or self.updated_contract:
            header += f" ({self.original_contract} -> {self.updated_contract})"
        return "\n\n".join([header] + [c.explain() for c in self.changes])


def _non_gap(layout: StorageLayout, label: str) -> Optional[StorageSlot]:
    for s in layout.slots:
        if s.label == label and not s.is_gap:
            return s
    return None


def compare_layouts(original: StorageLayout, updated: StorageLayout,
                    original_contract: str = "", updated_contract: str = "") -> LayoutReport:
    """
    Compare two storage layouts slot by slot.

    Returns a LayoutReport; report.ok is True when the upgrade is safe.
    """
    report = LayoutReport(original_contract=original_contract, updated_contract=updated_contract)

    # Regions of original gaps now used by new variables: [old gap start, new gap start)
    carved: List[Tuple[int, int]] = []

    for old in original.slots:
        if old.is_gap:
            new_gap = next(
                (s for s in updated.slots if s.is_gap and s.end == old.end and s.slot >= old.slot),
                None,
            )
            if new_gap is None:
                report.changes.append(LayoutChange("gap", old, updated.slot_at(old.slot)))
            else:
                carved.append((old.slot, new_gap.slot))
            continue

        new = updated.slot_at(old.slot)
        moved = _non_gap(updated, old.label)

        if new is None or new.is_gap:
            kind = "shift" if moved is not None else "delete"
            report.changes.append(LayoutChange(kind, old, moved))
            continue

        if new.label != old.label and new.renamed_from != old.label:
            if moved is not None:
                report.changes.append(LayoutChange("shift", old, moved))
            elif new.type != old.type:
                report.changes.append(LayoutChange("replace", old, new))
            else:
                report.changes.append(LayoutChange("rename", old, new))
            continue

        if new.type != old.type:
            report.changes.append(LayoutChange("typechange", old, new))
            continue

        if new.label != old.label:
            report.add_warning(f"`{old.label}` renamed to `{new.label}`")

    original_labels = {s.label for s in original.slots if not s.is_gap}
    # variables already reported as taking an original variable's place
    replacing = {c.updated.label for c in report.changes if c.kind in ("rename", "replace")}
    original_end = original.total_size
    for new in updated.slots:
        if new.is_gap or new.label in original_labels or new.renamed_from in original_labels:
            continue
        if new.label in replacing:
            continue
        if new.slot >= original_end:
            continue
        if any(start <= new.slot and new.end <= stop for start, stop in carved):
            continue
        report.changes.append(LayoutChange("insert", None, new))

    return report


def assert_upgrade_safe(original: StorageLayout, updated: StorageLayout,
                        original_contract: str = "", updated_contract: str = "") -> LayoutReport:
    """
    Raise StorageLayoutError unless `updated` can replace `original` behind a proxy.

    Returns:
        The (clean) LayoutReport, which may still carry warnings
    """
    report = compare_layouts(original, updated, original_contract, updated_contract)
    if not report.ok:
        raise StorageLayoutError(report.explain(), report)
    return report
