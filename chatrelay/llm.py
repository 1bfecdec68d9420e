"""Anthropic Claude client used to read a page when the stored script fails."""

import base64
import json
from dataclasses import dataclass
from typing import Any, Literal, Optional

from anthropic import Anthropic

from chatrelay.constants import SUPPORTED_MODELS

# Anthropic rejects images above ~5 MB
MAX_IMAGE_BYTES = 4_500_000


@dataclass
class ModelDescriptor:
    """Descriptor for an LLM model."""

    provider: Literal["anthropic"]
    name: str
    max_output_tokens: int
    temperature: float = 0.0


def image_block(png: bytes) -> Optional[dict[str, Any]]:
    """Wrap a PNG screenshot as a message content block.

    Returns:
        The block, or None if the image is too large to send
    """
    if not png or len(png) > MAX_IMAGE_BYTES:
        return None
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": "image/png",
            "data": base64.b64encode(png).decode("ascii"),
        },
    }


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


class LLM:
    """Anthropic Claude LLM interface."""

    def __init__(self, descriptor: ModelDescriptor, api_key: str):
        """Initialize LLM client.

        Args:
            descriptor: Model descriptor
            api_key: Anthropic API key
        """
        if descriptor.provider != "anthropic":
            raise ValueError(f"Only Anthropic models are supported. Got: {descriptor.provider}")

        self.descriptor = descriptor
        self.client = Anthropic(api_key=api_key)

    def call_tool(
        self,
        system: str,
        content: list[dict[str, Any]],
        tool: dict[str, Any],
        max_tokens: Optional[int] = None,
    ) -> Optional[dict[str, Any]]:
        """Send one user turn and force the model to answer through ``tool``.

        Args:
            system: System prompt
            content: User content blocks (text and images)
            tool: Anthropic tool definition (name, description, input_schema)
            max_tokens: Optional max tokens override

        Returns:
            The tool's input arguments, or None if the model did not call it

        Raises:
            anthropic.APIError: On transport or API failures
        """
        response = self.client.messages.create(
            model=self.descriptor.name,
            system=system,
            messages=[{"role": "user", "content": content}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
            temperature=self.descriptor.temperature,
            max_tokens=max_tokens or self.descriptor.max_output_tokens,
        )

        for block in response.content:
            if block.type != "tool_use" or block.name != tool["name"]:
                continue
            arguments = block.input
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    return None
            return arguments if isinstance(arguments, dict) else None

        return None

    @classmethod
    def parse_model_string(cls, model_str: str) -> ModelDescriptor:
        """Parse model string into ModelDescriptor.

        Args:
            model_str: Model string (e.g., "anthropic:claude-sonnet-4-5")

        Returns:
            ModelDescriptor

        Raises:
            ValueError: If model string is invalid
        """
        if model_str not in SUPPORTED_MODELS:
            raise ValueError(
                f"Unsupported model: {model_str}. "
                f"Supported: {', '.join(SUPPORTED_MODELS.keys())}"
            )

        model_config = SUPPORTED_MODELS[model_str]
        return ModelDescriptor(
            provider=model_config["provider"],
            name=model_config["name"],
            max_output_tokens=model_config["max_output_tokens"],
        )
