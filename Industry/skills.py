"""Character skill effects on job time and invention probability."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

INDUSTRY = "Industry"
ADVANCED_INDUSTRY = "Advanced Industry"
ENCRYPTION_SUFFIX = "Encryption Methods"

INDUSTRY_TIME_BONUS = 0.04  # per level
ADVANCED_INDUSTRY_TIME_BONUS = 0.03  # per level
SCIENCE_PROBABILITY_DIVISOR = 30.0
ENCRYPTION_PROBABILITY_DIVISOR = 40.0


@dataclass(frozen=True)
class Skills:
    """Trained skill levels by skill name. Untrained skills count as 0."""
    levels: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, int]) -> "Skills":
        return cls(levels={str(name): max(0, min(5, int(level))) for name, level in raw.items()})

    def level(self, name: str) -> int:
        return int(self.levels.get(name, 0))

    def manufacturing_time_factor(self) -> float:
        return (
            (1.0 - INDUSTRY_TIME_BONUS * self.level(INDUSTRY))
            * (1.0 - ADVANCED_INDUSTRY_TIME_BONUS * self.level(ADVANCED_INDUSTRY))
        )

    def invention_time_factor(self) -> float:
        return 1.0 - ADVANCED_INDUSTRY_TIME_BONUS * self.level(ADVANCED_INDUSTRY)

    def invention_probability_bonus(self, required: Iterable[str]) -> float:
        """Additive bonus: science skills / 30 plus encryption skills / 40."""
        science = 0.0
        encryption = 0.0
        for name in required:
            if name.endswith(ENCRYPTION_SUFFIX):
                encryption += self.level(name)
            else:
                science += self.level(name)
        return science / SCIENCE_PROBABILITY_DIVISOR + encryption / ENCRYPTION_PROBABILITY_DIVISOR

    def as_dict(self) -> Dict[str, int]:
        return dict(self.levels)
