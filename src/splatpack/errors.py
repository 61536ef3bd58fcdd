# ABOUTME: Exception types raised by the compression pipeline
# ABOUTME: Separates bad input data, clustering misconfiguration and format errors


class SplatPackError(Exception):
    """Base class for all pipeline errors."""


class InputDataError(SplatPackError):
    """Input splat arrays are missing, mis-shaped or inconsistent."""


class KMeansConfigError(SplatPackError):
    """K-means clustering was called with invalid parameters."""


class FormatError(SplatPackError):
    """Unknown data format, or an external encoder broke its size contract."""
