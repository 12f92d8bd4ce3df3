"""Interaction package utilities."""

from interaction.async_microphone import AsyncMicrophone
from interaction.audio import PyAudioOutputGraph
from interaction.capture import CapturePipeline
from interaction.playback import PlaybackScheduler, PlaybackUnit
from interaction.state import InteractionState, InteractionStateManager
from interaction.transcript import ConversationHistory, Direction, TranscriptAccumulator
from interaction.wake_word import WakeGate

__all__ = [
    "AsyncMicrophone",
    "CapturePipeline",
    "ConversationHistory",
    "Direction",
    "InteractionState",
    "InteractionStateManager",
    "PlaybackScheduler",
    "PlaybackUnit",
    "PyAudioOutputGraph",
    "TranscriptAccumulator",
    "WakeGate",
]
