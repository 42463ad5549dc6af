"""Checkout Ledger Module.

This module tracks which device and phone are loaned to whom:
- Register devices and phones
- Check out a device/phone pair to a person for a purpose
- Check the pair back in
- Query current loans and per-asset loan history

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
