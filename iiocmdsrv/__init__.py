"""IIO command server: line-oriented access to IIO device attributes and buffers."""

__version__ = "0.3.0"
