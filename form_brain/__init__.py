"""Army supply form extraction: VLM inference, normalization, validation and a receipt ledger."""

__version__ = "1.0.0"
