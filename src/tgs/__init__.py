"""
TEMPEST Ground Station (TGS)
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Link decoder for a half-duplex satellite radio link: splits one interleaved
byte stream into text lines, binary telemetry and base64 image chunks, and
reassembles images with gap detection and retransmission requests.
"""

from tgs.__version__ import __version__

__all__ = ["__version__"]
