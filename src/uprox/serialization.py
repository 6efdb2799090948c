"""
Serialization helpers for manifests and storage layouts.

Provides lossless JSON/YAML round-trip via intermediate dict representation.
This module intentionally keeps serialization structure stable and explicit.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict

import yaml

from uprox.model import (
    AdminRecord,
    ImplementationRecord,
    Manifest,
    ProxyKind,
    ProxyRecord,
    StorageLayout,
    StorageSlot,
)


def slot_to_dict(s: StorageSlot) -> Dict[str, Any]:
    return {
        "label": s.label,
        "type": s.type,
        "contract": s.contract,
        "slot": s.slot,
        "size": s.size,
        "renamed_from": s.renamed_from,
    }


def slot_from_dict(d: Dict[str, Any]) -> StorageSlot:
    return StorageSlot(
        label=d["label"],
        type=d["type"],
        contract=d.get("contract", ""),
        slot=d["slot"],
        size=d.get("size", 1),
        renamed_from=d.get("renamed_from"),
    )


def layout_to_dict(layout: StorageLayout) -> Dict[str, Any]:
    return {"storage": [slot_to_dict(s) for s in layout.slots]}


def layout_from_dict(d: Dict[str, Any] | None) -> StorageLayout:
    if d is None:
        return StorageLayout()
    return StorageLayout(slots=[slot_from_dict(s) for s in d.get("storage", [])])


def impl_to_dict(i: ImplementationRecord) -> Dict[str, Any]:
    return {
        "address": i.address,
        "contract": i.contract,
        "version": i.version,
        "layout": layout_to_dict(i.layout),
    }


def impl_from_dict(d: Dict[str, Any]) -> ImplementationRecord:
    return ImplementationRecord(
        address=d["address"],
        contract=d.get("contract", ""),
        version=d["version"],
        layout=layout_from_dict(d.get("layout")),
    )


def proxy_to_dict(p: ProxyRecord) -> Dict[str, Any]:
    return {"address": p.address, "kind": p.kind.value, "implementations": list(p.implementations)}


def proxy_from_dict(d: Dict[str, Any]) -> ProxyRecord:
    return ProxyRecord(
        address=d["address"],
        kind=ProxyKind(d["kind"]),
        implementations=list(d.get("implementations", [])),
    )


def admin_to_dict(a: AdminRecord | None) -> Dict[str, Any] | None:
    if a is None:
        return None
    return {"address": a.address, "owner": a.owner}


def admin_from_dict(d: Dict[str, Any] | None) -> AdminRecord | None:
    if d is None:
        return None
    return AdminRecord(address=d["address"], owner=d["owner"])


def manifest_to_dict(m: Manifest) -> Dict[str, Any]:
    return {
        "chain_id": m.chain_id,
        "admin": admin_to_dict(m.admin),
        "proxies": [proxy_to_dict(p) for p in m.proxies],
        "impls": {version: impl_to_dict(i) for version, i in m.impls.items()},
    }


def manifest_from_dict(d: Dict[str, Any]) -> Manifest:
    m = Manifest(chain_id=d["chain_id"])
    m.admin = admin_from_dict(d.get("admin"))
    m.proxies = [proxy_from_dict(p) for p in d.get("proxies", [])]
    m.impls = {version: impl_from_dict(i) for version, i in d.get("impls", {}).items()}
    return m


def manifest_to_json(m: Manifest) -> str:
    return json.dumps(manifest_to_dict(m), sort_keys=True, indent=2)


def manifest_from_json(s: str) -> Manifest:
    return manifest_from_dict(json.loads(s))


def manifest_to_yaml(m: Manifest) -> str:
    return yaml.safe_dump(manifest_to_dict(m))


def manifest_from_yaml(s: str) -> Manifest:
    return manifest_from_dict(yaml.safe_load(s))


def save_manifest(m: Manifest, path: str) -> None:
    """Write a manifest; the format follows the extension (.json, otherwise YAML)."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    text = manifest_to_json(m) if path.endswith(".json") else manifest_to_yaml(m)
    with open(path, "w") as f:
        f.write(text)


def load_manifest(path: str) -> Manifest:
    with open(path) as f:
        text = f.read()
    return manifest_from_json(text) if path.endswith(".json") else manifest_from_yaml(text)
