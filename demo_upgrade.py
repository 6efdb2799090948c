"""
Demo: deploy the sanctions list behind a proxy, use it, upgrade it, and
export the manifest.
"""

import sys

from uprox.chain import Chain
from uprox.config import UpgradesConfig, configure_logging, load_config
from uprox.contract import storage_layout
from uprox.examples import SanctionsUpgradeableV0, SanctionsUpgradeableV1
from uprox.layout import compare_layouts
from uprox.serialization import manifest_to_yaml
from uprox.upgrades import Upgrades


def print_layout_report(report):
    """Pretty-print a LayoutReport."""
    print()
    print("=" * 70)
    print(f"STORAGE LAYOUT CHECK: {report.original_contract} -> {report.updated_contract}")
    print("=" * 70)
    if report.ok:
        print("  Compatible")
    else:
        print(report.explain())
    for warning in report.warnings:
        print(f"  warning: {warning}")
    print()


if __name__ == "__main__":
    # optional argument: path to a YAML config file
    config = load_config(sys.argv[1]) if len(sys.argv) > 1 else UpgradesConfig(log_level="INFO")
    configure_logging(config)

    chain = Chain.from_config(config)
    upgrades = Upgrades(chain, config)
    user = chain.accounts[1]

    v0 = chain.get_contract_factory("SanctionsUpgradeableV0")
    proxy = upgrades.deploy_proxy(v0)
    proxy.add_to_sanctions_list([user])
    print(f"V0 at {proxy.address}: {proxy.name()} v{proxy.version_number()}, "
          f"{user} sanctioned: {proxy.is_sanctioned(user)}")

    report = compare_layouts(
        storage_layout(SanctionsUpgradeableV0),
        storage_layout(SanctionsUpgradeableV1),
        "SanctionsUpgradeableV0",
        "SanctionsUpgradeableV1",
    )
    print_layout_report(report)

    v1 = chain.get_contract_factory("SanctionsUpgradeableV1")
    proxy = upgrades.upgrade_proxy(proxy, v1, call=("initialize_v1", [1]))
    print(f"V1 at {proxy.address}: {proxy.name()} v{proxy.version_number()}, "
          f"{user} sanctioned: {proxy.is_sanctioned(user)}, count: {proxy.sanctioned_count()}")

    with open("manifest_output.yaml", "w") as f:
        f.write(manifest_to_yaml(upgrades.manifest))
    print("✅ Manifest exported to manifest_output.yaml")
