"""IoT inventory: devices, phones and the checkout ledger that loans them out."""

__version__ = "1.0.0"
