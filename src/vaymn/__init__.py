"""VAYMN: library catalog, accounts and loans over a local-first mirror."""

__version__ = "0.1.0"
