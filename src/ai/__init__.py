"""AI module: rating contracts, critic abstraction, and reply parsing."""

from src.ai.analysis import analyze_tree
from src.ai.critic_base import BaseTreeCritic, MockTreeCritic
from src.ai.factory import get_tree_critic
from src.ai.parser import parse_rating
from src.ai.schema import ModelCard, ScoreSection, TreeRating

__all__ = [
    "BaseTreeCritic",
    "MockTreeCritic",
    "ModelCard",
    "ScoreSection",
    "TreeRating",
    "analyze_tree",
    "get_tree_critic",
    "parse_rating",
]
