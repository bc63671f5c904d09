"""undockerizer - turn a saved container image into a plain shell script."""

__version__ = "0.1.0"
