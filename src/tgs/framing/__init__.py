"""Byte-stream framing and text line routing."""

from tgs.framing.classifier import FramerConfig, StreamFramer
from tgs.framing.text import TextLineRouter

__all__ = ["FramerConfig", "StreamFramer", "TextLineRouter"]
