"""
Politiques de tolerance pour le rapprochement activite / seance.

Une politique associe un ecart en jours (valeur absolue) a une tolerance
maximale sur la duree et a un niveau de confiance. Deux politiques coexistent :

- ``adaptive`` : meme jour <= 45 % (high), jour adjacent <= 25 % (medium)
- ``legacy``   : meme jour uniquement, <= 20 % (high). Les donnees historiques
  ont ete rapprochees avec cette regle et doivent rester interpretables ainsi.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from trainlog.domain.entities.reconciliation_link import ConfidenceTier


@dataclass(frozen=True)
class ToleranceWindow:
    max_duration_delta_pct: float
    confidence: ConfidenceTier


@dataclass(frozen=True)
class MatchingPolicy:
    name: str
    windows: Mapping[int, ToleranceWindow]

    @property
    def max_day_delta(self) -> int:
        return max(self.windows)

    def classify(self, day_delta: int, duration_delta_pct: float) -> Optional[ConfidenceTier]:
        """Retourne le niveau de confiance, ou None si le couple n'est pas candidat."""
        window = self.windows.get(abs(day_delta))
        if window is None:
            return None
        if duration_delta_pct > window.max_duration_delta_pct:
            return None
        return window.confidence


def match_score(duration_delta_pct: float) -> float:
    """Score qualite persiste sur la seance : clamp(1 - ecart, 0, 1)."""
    return max(0.0, min(1.0, 1.0 - duration_delta_pct))


ADAPTIVE_POLICY = MatchingPolicy(
    name="adaptive",
    windows={
        0: ToleranceWindow(0.45, ConfidenceTier.HIGH),
        1: ToleranceWindow(0.25, ConfidenceTier.MEDIUM),
    },
)

LEGACY_POLICY = MatchingPolicy(
    name="legacy",
    windows={
        0: ToleranceWindow(0.20, ConfidenceTier.HIGH),
    },
)

POLICIES: Dict[str, MatchingPolicy] = {
    ADAPTIVE_POLICY.name: ADAPTIVE_POLICY,
    LEGACY_POLICY.name: LEGACY_POLICY,
}


def get_policy(name: str) -> MatchingPolicy:
    """Resout une politique par son nom ('adaptive' ou 'legacy')."""
    policy = POLICIES.get((name or "").strip().lower())
    if policy is None:
        raise ValueError(f"Politique de reconciliation inconnue: {name!r}")
    return policy
