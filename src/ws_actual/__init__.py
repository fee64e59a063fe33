"""Import WealthSimple activity into an Actual Budget ledger."""

__version__ = "0.1.0"
