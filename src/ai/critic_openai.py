"""Tree critic backed by the OpenAI chat completions API (vision input by URL).

One request per critique, no retries. The image is sent by public URL at low
detail to bound cost and latency; the model fetches it itself.
"""

import logging

from openai import OpenAI, OpenAIError

from src.ai.critic_base import SYSTEM_PROMPT, USER_PROMPT, BaseTreeCritic
from src.ai.schema import ModelCard
from src.core.errors import InferenceError

_log = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
MAX_TOKENS = 1000
TEMPERATURE = 0.7
IMAGE_DETAIL = "low"
REQUEST_TIMEOUT_SECONDS = 60.0


def build_messages(image_url: str) -> list[dict]:
    """Chat messages for one critique: fixed system template, fixed instruction plus the image."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": USER_PROMPT},
                {
                    "type": "image_url",
                    "image_url": {"url": image_url, "detail": IMAGE_DETAIL},
                },
            ],
        },
    ]


class OpenAITreeCritic(BaseTreeCritic):
    """Critic that calls an OpenAI vision-capable chat model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        *,
        client: OpenAI | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.model = model
        self._api_key = api_key or None
        self._timeout = timeout
        self._client = client

    def get_model_card(self) -> ModelCard:
        return ModelCard(name="openai", version=self.model)

    def _get_client(self) -> OpenAI:
        """Create the SDK client on first use so a missing key surfaces as an inference failure."""
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)
        return self._client

    def critique(self, image_url: str) -> str:
        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=build_messages(image_url),
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
        except OpenAIError as e:
            _log.error("OpenAI analysis error: %s", e, exc_info=True)
            raise InferenceError(f"Failed to analyze Christmas tree: {e}") from e

        if not completion.choices:
            raise InferenceError("Failed to analyze Christmas tree: empty response")
        content = completion.choices[0].message.content
        if not content or not content.strip():
            raise InferenceError("Failed to analyze Christmas tree: empty response")
        reply = content.strip()
        _log.debug("OpenAI raw response: %s", reply)
        return reply
