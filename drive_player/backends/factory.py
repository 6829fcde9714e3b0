"""
Output factory and registry.

Provides factory methods to instantiate audio outputs by type name.
"""

import logging
from typing import Optional

from drive_player.config import Config

from .base import AudioOutput
from .local import LocalAudioOutput
from .null import NullAudioOutput

logger = logging.getLogger(__name__)


class OutputNotFoundError(Exception):
    """Raised when the requested output type is not available or fails to open."""

    pass


class OutputRegistry:
    """
    Registry of available output types.

    The factory uses this to instantiate outputs by configured type name.
    """

    _outputs: dict[str, type[AudioOutput]] = {}

    @classmethod
    def register(cls, type_name: str, output_class: type[AudioOutput]) -> None:
        """Register an output class."""
        cls._outputs[type_name] = output_class
        logger.debug(f"Registered output type: {type_name}")

    @classmethod
    def get(cls, type_name: str) -> Optional[type[AudioOutput]]:
        return cls._outputs.get(type_name)

    @classmethod
    def available_types(cls) -> list[str]:
        return list(cls._outputs.keys())


class OutputFactory:
    """
    Factory for creating connected audio outputs.

    Usage:
        output = await OutputFactory.create_from_config(config)
    """

    @classmethod
    async def create_from_config(cls, config: Config) -> AudioOutput:
        """Create and connect the output selected by configuration."""
        output_type = config.backend.type

        output_class = OutputRegistry.get(output_type)
        if not output_class:
            available = OutputRegistry.available_types()
            raise OutputNotFoundError(
                f"Output type '{output_type}' not available. Available types: {available}"
            )

        if output_type == "local":
            output: AudioOutput = LocalAudioOutput(
                device=config.backend.local.device,
                buffer_size=config.backend.local.buffer_size,
            )
        else:
            output = output_class()

        if not await output.connect():
            raise OutputNotFoundError(f"Failed to open {output_type} audio output")
        output.set_volume(config.player.volume)
        return output

    @classmethod
    def list_available_outputs(cls) -> list[str]:
        return OutputRegistry.available_types()


OutputRegistry.register("local", LocalAudioOutput)
OutputRegistry.register("null", NullAudioOutput)
