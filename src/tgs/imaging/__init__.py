"""Image reassembly and retransmission."""

from tgs.imaging.reassembler import ImageReassembler, ReassemblerConfig
from tgs.imaging.retransmit import RetransmissionCoordinator, RetransmitConfig

__all__ = [
    "ImageReassembler",
    "ReassemblerConfig",
    "RetransmissionCoordinator",
    "RetransmitConfig",
]
