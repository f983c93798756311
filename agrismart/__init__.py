"""AgriSmart agronomic estimation and recommendation service."""
__version__ = "0.1.0"
