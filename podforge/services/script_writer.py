import logging

import httpx

from podforge.errors import EmptyInput, PodforgeError
from podforge.models.content import ExtractedContent
from podforge.services.script_policy import ScriptPolicyService

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = "You write podcast scripts for a single narrator. Reply with the script text only."

# Source text sent to the model is capped to keep requests within context limits.
_MAX_SOURCE_CHARS = 24000


class ScriptWriterError(PodforgeError):
    retryable = True


class ScriptWriter:
    """Turns extracted content into a narration script through a chat-completions endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        policy: ScriptPolicyService,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._policy = policy
        self._timeout = timeout

    def _messages(self, content: ExtractedContent, feedback: list[str] | None) -> list[dict]:
        source = f"Title: {content.title}\n\n{content.content[:_MAX_SOURCE_CHARS]}"
        user = self._policy.build_prompt(source)
        if feedback:
            user += "\n\nThe previous draft was rejected:\n" + "\n".join(f"- {v}" for v in feedback)
        return [{"role": "system", "content": _SYSTEM_PROMPT}, {"role": "user", "content": user}]

    async def write(self, content: ExtractedContent, feedback: list[str] | None = None) -> str:
        if not content.content.strip():
            raise EmptyInput("Extracted content is empty; nothing to script")
        if not self._api_key:
            raise ScriptWriterError("Script writer is not configured")

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "model": self._model,
                        "messages": self._messages(content, feedback),
                        "temperature": 0.7,
                    },
                )
        except httpx.HTTPError as exc:
            raise ScriptWriterError(f"Script request failed: {exc}") from exc

        if response.status_code != 200:
            raise ScriptWriterError(
                f"Script endpoint returned {response.status_code}: {response.text[:200]}"
            )
        try:
            script = response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ScriptWriterError(f"Unexpected script response shape: {exc}") from exc

        script = (script or "").strip()
        logger.info("[script] generated | title=%s | words=%d", content.title, len(script.split()))
        return script
