"""perflink -- product-code normalization and multi-source performer resolution."""

__version__ = "0.1.0"
