"""
Inventory Module - Black Box Interface

Purpose: Report the cluster's nodes to the control server
Interface: InventoryReporter.collect_cluster_info(), InventoryReporter.report(sink)
Hidden: Node listing, reduction to name and phase
"""

from .inventory import InventoryReporter

__all__ = ["InventoryReporter"]
