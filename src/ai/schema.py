"""Pydantic data contracts for AI models and tree ratings."""

from pydantic import BaseModel, ConfigDict, Field


class ModelCard(BaseModel):
    """Metadata identifying an AI/vision model."""

    name: str
    version: str


class ScoreSection(BaseModel):
    """One scored dimension of a critique. Scores are not clamped to [0, 5]."""

    score: float = 0
    explanation: str = ""


class TreeRating(BaseModel):
    """Structured critique parsed from the oracle's reply.

    Serialized with by_alias=True the field names match the public JSON contract
    (greatFeatures is camelCase there).
    """

    model_config = ConfigDict(populate_by_name=True)

    aesthetics: ScoreSection = Field(default_factory=ScoreSection)
    originality: ScoreSection = Field(default_factory=ScoreSection)
    great_features: str = Field(default="", alias="greatFeatures")
    improvements: list[str] = Field(default_factory=list)

    @property
    def total_score(self) -> float:
        return self.aesthetics.score + self.originality.score
