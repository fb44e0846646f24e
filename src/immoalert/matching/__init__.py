"""
Módulo de matching.

- scoring: puntaje puro de un listing contra criterios
- engine: creación de matches y handoff al dispatcher
"""

from immoalert.matching.scoring import ScoreBreakdown, score_listing
from immoalert.matching.engine import MatchCandidate, MatchingEngine, MatchingStats

__all__ = [
    "ScoreBreakdown",
    "score_listing",
    "MatchCandidate",
    "MatchingEngine",
    "MatchingStats",
]
