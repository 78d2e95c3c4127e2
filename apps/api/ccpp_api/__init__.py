"""CCPP monitoring core: chained logbook and perceptual image matching."""

__version__ = "0.1.0"
