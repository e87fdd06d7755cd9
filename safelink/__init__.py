"""SafeLink offline data layer and cycle prediction engine."""

__version__ = "0.1.0"
