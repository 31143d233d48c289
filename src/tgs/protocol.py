"""Wire constants shared by the framer, decoder and image reassembler.

Every frame on the link starts with a 4-byte ASCII tag.  Most telemetry
frames have a fixed size (tag included); ``POLL`` carries its own payload
length and ``SEND``/``RETX`` image chunks are delimited by lookahead.
"""

from __future__ import annotations

TAG_SIZE = 4

IMAGE_SEND = b"SEND"
IMAGE_RETX = b"RETX"
IMAGE_HEADERS: frozenset[bytes] = frozenset({IMAGE_SEND, IMAGE_RETX})

POLL_TAG = b"POLL"
POLL_HEADER_SIZE = 8
POLL_RECORD_BYTES = 64

RETX_ECHO_MAX = 256

# Fixed frame sizes in bytes, tag included.
FIXED_FRAME_SIZES: dict[bytes, int] = {
    b"GYRO": 16,
    b"ACCL": 16,
    b"MAGN": 16,
    b"GRAV": 16,
    b"EULR": 16,
    b"BMED": 16,
    b"OBCR": 8,
    b"OBCD": 8,
    b"OBCC": 8,
    b"OBCL": 234,
    b"OBCP": 234,
    b"ADCS": 32,
    b"EPSS": 28,
    b"HOST": 15,
    b"SOLR": 36,
}

TELEMETRY_TAGS: frozenset[bytes] = frozenset({*FIXED_FRAME_SIZES, POLL_TAG, IMAGE_RETX})
KNOWN_TAGS: frozenset[bytes] = TELEMETRY_TAGS | IMAGE_HEADERS

LOOKAHEAD_WINDOW = 1024
OVERFLOW_THRESHOLD = 1024

BASE64_ALPHABET: frozenset[int] = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
)
LINE_ENDINGS: frozenset[int] = frozenset(b"\r\n")

CHUNK_METADATA_DIGITS = 8

TAG_NAMES: dict[str, str] = {
    "GYRO": "Gyroscope",
    "ACCL": "Accelerometer",
    "MAGN": "Magnetometer",
    "GRAV": "Gravity Vector",
    "EULR": "Euler Angles",
    "BMED": "BME280 Environment",
    "POLL": "Environmental Poll",
    "OBCR": "OBC RAM Usage",
    "OBCD": "OBC Disk Usage",
    "OBCC": "OBC CPU Usage",
    "OBCL": "OBC File Listing",
    "OBCP": "OBC Process List",
    "ADCS": "Attitude Control",
    "EPSS": "Power System",
    "HOST": "Hostname",
    "SOLR": "Solar Panels",
    "RETX": "Retransmission",
    "SEND": "Image Data",
}


def tag_name(tag: str) -> str:
    """Human-readable name for a 4-character tag."""
    return TAG_NAMES.get(tag, tag)
