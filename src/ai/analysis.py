"""Critique + parse: the oracle half of the upload pipeline."""

import logging

from src.ai.critic_base import BaseTreeCritic
from src.ai.parser import parse_rating
from src.ai.schema import TreeRating
from src.core.errors import InferenceError, TreeRaterError

_log = logging.getLogger(__name__)


def analyze_tree(critic: BaseTreeCritic, image_url: str) -> TreeRating:
    """Ask the critic about image_url and parse the reply.

    Pipeline errors propagate unchanged; anything unexpected from a critic
    implementation is reported as an InferenceError.
    """
    try:
        reply = critic.critique(image_url)
    except TreeRaterError:
        raise
    except Exception as e:
        _log.error("Critic %s failed: %s", critic.get_model_card().name, e, exc_info=True)
        raise InferenceError(f"Failed to analyze Christmas tree: {e}") from e
    return parse_rating(reply)
