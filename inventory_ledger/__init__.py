"""Storefront inventory ledger: stock movements, adjustments and inventory views."""

__version__ = "1.0.0"
