"""Wire-level decoding: frames, envelopes, chat events and batch results."""

from notebooklm_wire.wire.batch import RPCResult, decode_batch_response
from notebooklm_wire.wire.chat import ChatEvent, ChatStream, decode_chat_event
from notebooklm_wire.wire.envelope import DecodedFrame, FrameKind, decode_frame
from notebooklm_wire.wire.frames import Frame, FrameReassembler, ReassemblerState

__all__ = [
    "ChatEvent",
    "ChatStream",
    "DecodedFrame",
    "Frame",
    "FrameKind",
    "FrameReassembler",
    "RPCResult",
    "ReassemblerState",
    "decode_batch_response",
    "decode_chat_event",
    "decode_frame",
]
