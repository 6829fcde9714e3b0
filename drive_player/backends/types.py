"""
Audio output types.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class OutputInfo:
    """
    Information about an audio output.

    Used for logging and display purposes.
    """

    output_type: str  # 'local', 'null'
    name: str  # Display name
    device_id: str  # Unique identifier
    sample_rate: Optional[int] = None
    channels: Optional[int] = None

    def __str__(self) -> str:
        if self.sample_rate:
            return f"{self.name} ({self.output_type}, {self.sample_rate}Hz)"
        return f"{self.name} ({self.output_type})"
