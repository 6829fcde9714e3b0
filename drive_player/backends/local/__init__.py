"""
Local audio output.

Plays decoded tracks through the local audio device using sounddevice
(PortAudio).
"""

from .device import AudioDeviceInfo, format_device_list, list_audio_devices, resolve_device
from .output import LocalAudioOutput

__all__ = [
    "AudioDeviceInfo",
    "LocalAudioOutput",
    "format_device_list",
    "list_audio_devices",
    "resolve_device",
]
