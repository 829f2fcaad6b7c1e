"""Module de matching : candidats, scores, confiance."""

from concordimmo.matching.blockers import ValidationError
from concordimmo.matching.confidence import ConfidenceTier, classify
from concordimmo.matching.linker import PropertyMatcher
from concordimmo.matching.schema import MatchCriterion, MatchProposal, MatchResult, ReferenceRecord, SourceRecord

__all__ = [
    "ConfidenceTier",
    "MatchCriterion",
    "MatchProposal",
    "MatchResult",
    "PropertyMatcher",
    "ReferenceRecord",
    "SourceRecord",
    "ValidationError",
    "classify",
]
