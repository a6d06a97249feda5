"""Abstract base and mock implementation for tree critics (the AI oracle)."""

from abc import ABC, abstractmethod

from src.ai.schema import ModelCard

SYSTEM_PROMPT = (
    "You are a professional Christmas tree critic. Use the following format for your response:\n"
    "\n"
    "Aesthetics Score: [0-5]\n"
    "Aesthetics Explanation: [one sentence]\n"
    "\n"
    "Originality Score: [0-5]\n"
    "Originality Explanation: [one sentence]\n"
    "\n"
    "Great Feature: [one specific feature]\n"
    "\n"
    "Improvements:\n"
    "1. [improvement]\n"
    "2. [improvement]\n"
    "3. [improvement]"
)

USER_PROMPT = "Please analyze this Christmas tree. Be honest but constructive in your feedback."


class BaseTreeCritic(ABC):
    """Sends a public image URL to a vision-language model and returns its raw reply."""

    @abstractmethod
    def get_model_card(self) -> ModelCard:
        """Return model identity (name, version)."""
        ...

    @abstractmethod
    def critique(self, image_url: str) -> str:
        """Return the model's raw templated critique of the image at image_url.

        Raises InferenceError on any transport or service failure.
        """
        ...


class MockTreeCritic(BaseTreeCritic):
    """Canned critic for development and tests. Never touches the network."""

    REPLY = (
        "Aesthetics Score: 4\n"
        "Aesthetics Explanation: Well balanced shape with evenly spread lights.\n"
        "\n"
        "Originality Score: 3\n"
        "Originality Explanation: A classic look with a few personal touches.\n"
        "\n"
        "Great Feature: The warm white lights\n"
        "\n"
        "Improvements:\n"
        "1. Add a bolder tree topper\n"
        "2. Fill the gaps near the bottom branches\n"
        "3. Try a ribbon garland for contrast"
    )

    def __init__(self, reply: str | None = None) -> None:
        self.reply = reply if reply is not None else self.REPLY
        self.calls: list[str] = []

    def get_model_card(self) -> ModelCard:
        return ModelCard(name="mock-critic", version="1.0")

    def critique(self, image_url: str) -> str:
        self.calls.append(image_url)
        return self.reply
