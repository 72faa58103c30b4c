"""Node extraction and classification."""

from report_validation.extraction.classifier import (
    classify,
    classify_all,
    register_profile,
)
from report_validation.extraction.extractor import (
    NODE_TYPE_TRAITS,
    NodeDraft,
    RegionSpec,
    ReportExtractor,
    extract,
    get_extractor,
    register_extractor,
)

__all__ = [
    "NODE_TYPE_TRAITS",
    "NodeDraft",
    "RegionSpec",
    "ReportExtractor",
    "classify",
    "classify_all",
    "extract",
    "get_extractor",
    "register_extractor",
    "register_profile",
]
