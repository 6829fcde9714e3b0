"""
Audio device discovery and selection.

Enumerates output devices via sounddevice (PortAudio) and resolves the
configured device string to one of them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class AudioDeviceInfo:
    """An audio output device."""

    index: int
    name: str
    channels: int
    default_samplerate: float
    is_default: bool

    def describe(self) -> str:
        marker = " (default)" if self.is_default else ""
        return (
            f"[{self.index}] {self.name}{marker} "
            f"- {self.channels}ch, {int(self.default_samplerate)}Hz"
        )


def _import_sounddevice():
    """Lazy import of sounddevice (PortAudio may be missing on headless hosts)."""
    try:
        import sounddevice as sd

        return sd
    except (ImportError, OSError) as e:
        raise ImportError(
            f"sounddevice/PortAudio unavailable ({e}). "
            "Install PortAudio or use backend type 'null'."
        )


def list_audio_devices() -> list[AudioDeviceInfo]:
    """List devices that have at least one output channel."""
    sd = _import_sounddevice()
    default_output = sd.default.device[1]

    return [
        AudioDeviceInfo(
            index=i,
            name=dev["name"],
            channels=dev["max_output_channels"],
            default_samplerate=dev["default_samplerate"],
            is_default=(i == default_output),
        )
        for i, dev in enumerate(sd.query_devices())
        if dev["max_output_channels"] > 0
    ]


def _by_index(devices: list[AudioDeviceInfo], spec: str) -> Optional[AudioDeviceInfo]:
    if not spec.isdigit():
        return None
    index = int(spec)
    for dev in devices:
        if dev.index == index:
            return dev
    raise ValueError(
        f"No audio output device at index {index}. "
        f"Available devices:\n{format_device_list(devices)}"
    )


def _by_name(devices: list[AudioDeviceInfo], spec: str) -> Optional[AudioDeviceInfo]:
    wanted = spec.lower()
    exact = [d for d in devices if d.name.lower() == wanted]
    if exact:
        return exact[0]
    partial = [d for d in devices if wanted in d.name.lower()]
    if len(partial) > 1:
        logger.warning(f"Multiple devices match '{spec}', using first: {partial[0].name}")
    return partial[0] if partial else None


def resolve_device(device_config: str) -> AudioDeviceInfo:
    """
    Resolve a device configuration string.

    Args:
        device_config: "default", a device index, or a (partial) device name

    Raises:
        ValueError: If no matching device exists
    """
    devices = list_audio_devices()
    if not devices:
        raise ValueError("No audio output devices found on this system")

    if device_config.lower() == "default":
        dev = next((d for d in devices if d.is_default), None)
        if dev is None:
            logger.warning("No default device found, using first available")
            dev = devices[0]
        return dev

    dev = _by_index(devices, device_config) or _by_name(devices, device_config)
    if dev is None:
        raise ValueError(
            f"No audio device matching '{device_config}'. "
            f"Available devices:\n{format_device_list(devices)}"
        )
    logger.info(f"Using audio device: {dev.name}")
    return dev


def format_device_list(devices: Optional[list[AudioDeviceInfo]] = None) -> str:
    """Format device list for display."""
    if devices is None:
        devices = list_audio_devices()
    return "\n".join(f"  {dev.describe()}" for dev in devices)
