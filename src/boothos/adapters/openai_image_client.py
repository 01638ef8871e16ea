"""OpenAI Images API client for AI backgrounds."""

import base64
from dataclasses import dataclass

from openai import AsyncOpenAI

from boothos.services.backgrounds import AiImageClient


@dataclass
class OpenAIImageClient(AiImageClient):
    """Text-to-image client backed by the OpenAI Images API."""

    client: AsyncOpenAI
    model: str = "gpt-image-1"

    @classmethod
    def create(cls, api_key: str, model: str = "gpt-image-1") -> "OpenAIImageClient":
        """Create an OpenAI image client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def generate(self, prompt: str, size: str) -> bytes:
        """Generate one image and return its PNG bytes."""
        response = await self.client.images.generate(
            model=self.model,
            prompt=prompt,
            size=size,
            n=1,
        )
        if not response.data or not response.data[0].b64_json:
            raise RuntimeError("OpenAI returned no image data")
        return base64.b64decode(response.data[0].b64_json)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
