from .errors import ConfigurationError, EncodingFailure, JpegTuneError, ScoringFailure
from .models import SearchConfig, SearchOutcome, SearchStatus, ToleranceBand
from .search import QualitySearchController, find_quality

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "EncodingFailure",
    "JpegTuneError",
    "QualitySearchController",
    "ScoringFailure",
    "SearchConfig",
    "SearchOutcome",
    "SearchStatus",
    "ToleranceBand",
    "find_quality",
]
