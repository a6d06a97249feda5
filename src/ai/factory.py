"""Factory for tree critics. The OpenAI SDK is imported lazily so the mock critic needs no network stack."""

from src.ai.critic_base import BaseTreeCritic
from src.core.config import Settings


def get_tree_critic(critic_name: str, settings: Settings | None = None) -> BaseTreeCritic:
    """Return a tree critic by name ("mock" or "openai")."""
    if critic_name == "mock":
        from src.ai.critic_base import MockTreeCritic

        return MockTreeCritic()
    if critic_name == "openai":
        from src.ai.critic_openai import DEFAULT_MODEL, OpenAITreeCritic

        if settings is None:
            return OpenAITreeCritic(model=DEFAULT_MODEL)
        return OpenAITreeCritic(api_key=settings.openai_api_key, model=settings.openai_model)
    raise ValueError(f"Unknown tree critic: {critic_name}")
