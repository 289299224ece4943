"""OpenAI Responses API client for schema-constrained completions."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from voice_logger.domain.errors import SchemaValidationError
from voice_logger.services.completion import CompletionClient


@dataclass
class OpenAICompletionClient(CompletionClient):
    """Completion client backed by the OpenAI Responses API."""

    client: AsyncOpenAI

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        name: str,
        schema: dict[str, object],
        system: str,
        prompt: str,
    ) -> dict[str, object]:
        """Call the Responses API with strict structured outputs."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": system}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": name,
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise SchemaValidationError(f"OpenAI returned an empty {name} response")
        try:
            payload = json.loads(output_text)
        except json.JSONDecodeError as exc:
            raise SchemaValidationError(f"OpenAI returned invalid {name} JSON") from exc
        if not isinstance(payload, dict):
            raise SchemaValidationError(f"OpenAI {name} response is not an object")
        return payload

    async def close(self) -> None:
        await self.client.close()
