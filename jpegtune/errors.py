"""Exception hierarchy for jpegtune.

JpegTuneError is the root so callers can catch a whole file's failure in one
place and still tell the categories apart.
"""


class JpegTuneError(Exception):
    """Root exception for the package."""


class EncodingFailure(JpegTuneError):
    """The encoder rejected the input or the quality level."""


class ScoringFailure(JpegTuneError):
    """Raster normalization or the dissimilarity metric failed."""


class ConfigurationError(JpegTuneError):
    """Unsupported encoder, missing tool, or invalid search bounds."""
