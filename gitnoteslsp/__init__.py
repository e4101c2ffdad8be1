"""Language server that shows git notes as inlay hints and hovers."""

__version__ = "0.0.2"