"""Tool declarations and handlers for live session function calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ai.observers import SessionObserver
from core.logging import logger
from interaction.state import InteractionStateManager
from interaction.transcript import ConversationHistory
from services.generation import GenerationService


@dataclass
class ToolContext:
    """Everything a handler may touch while its session is alive."""

    generation: GenerationService
    state: InteractionStateManager
    observer: SessionObserver
    history: ConversationHistory | None = None
    is_current: Callable[[], bool] = field(default=lambda: True)


ToolFn = Callable[..., Awaitable[Any]]

function_map: dict[str, ToolFn] = {}

tools: list[dict[str, Any]] = []

# Observer notice and response prefix used when a handler fails.
failure_messages: dict[str, tuple[str, str]] = {}


async def set_smart_home_device_state(
    context: ToolContext,
    deviceName: str,
    state: str,
    brightness: float | None = None,
) -> str:
    """Acknowledge a smart home command; no device is driven."""

    logger.info(
        "Smart home command: %s -> %s%s",
        deviceName,
        state,
        f" (brightness {brightness})" if brightness is not None else "",
    )
    return "OK, command executed."


async def generate_image_from_prompt(context: ToolContext, prompt: str) -> str:
    context.state.tool_work_started(f"Generating image: {prompt}")
    image = await asyncio.to_thread(context.generation.generate_image, prompt)
    if context.is_current():
        context.observer.on_image_produced(image.data_uri, prompt)
        if context.history is not None:
            context.history.add_image(prompt, image.data_uri)
    return "OK, the image has been generated and displayed."


async def generate_story(context: ToolContext, prompt: str) -> str:
    context.state.tool_work_started(f"Writing a story: {prompt}")
    return await asyncio.to_thread(context.generation.generate_text, prompt)


async def search_web(context: ToolContext, query: str) -> str:
    """Answer with web grounding; complete citations reach observers before the answer."""

    context.state.tool_work_started(f"Searching the web: {query}")
    grounded = await asyncio.to_thread(context.generation.generate_grounded_text, query)
    citations = grounded.complete_citations()
    if citations and context.is_current():
        context.observer.on_grounding_sources(citations)
        if context.history is not None:
            context.history.add_sources(citations)
    if not citations:
        return grounded.text
    source_lines = "\n".join(f"- {citation.title} ({citation.uri})" for citation in citations)
    return f"{grounded.text}\n\nSources:\n{source_lines}"


tools.append(
    {
        "name": "setSmartHomeDeviceState",
        "description": "Sets the state of a smart home device, like a light or thermostat.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "deviceName": {
                    "type": "STRING",
                    "description": 'The name of the device, e.g., "living room light".',
                },
                "state": {
                    "type": "STRING",
                    "description": 'The desired state, e.g., "on", "off", "dim".',
                },
                "brightness": {
                    "type": "NUMBER",
                    "description": "Optional brightness level from 0 to 100.",
                },
            },
            "required": ["deviceName", "state"],
        },
    }
)

function_map["setSmartHomeDeviceState"] = set_smart_home_device_state

tools.append(
    {
        "name": "generateImageFromPrompt",
        "description": "Generates an image based on a detailed text description.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "prompt": {
                    "type": "STRING",
                    "description": "A creative and descriptive prompt for the image to be generated.",
                },
            },
            "required": ["prompt"],
        },
    }
)

function_map["generateImageFromPrompt"] = generate_image_from_prompt
failure_messages["generateImageFromPrompt"] = ("Image generation failed.", "Failed to generate image")

tools.append(
    {
        "name": "generateStory",
        "description": (
            "Writes a short story from the user's idea. "
            "Read the returned story aloud to the user."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "prompt": {
                    "type": "STRING",
                    "description": "What the story should be about, including tone and length.",
                },
            },
            "required": ["prompt"],
        },
    }
)

function_map["generateStory"] = generate_story
failure_messages["generateStory"] = ("Story generation failed.", "Failed to generate story")

tools.append(
    {
        "name": "searchWeb",
        "description": (
            "Searches the web for current information and returns a grounded answer "
            "with its sources. Use it for news, facts and anything time sensitive."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "query": {
                    "type": "STRING",
                    "description": "The search query.",
                },
            },
            "required": ["query"],
        },
    }
)

function_map["searchWeb"] = search_web
failure_messages["searchWeb"] = ("Web search failed.", "Failed to search the web")
