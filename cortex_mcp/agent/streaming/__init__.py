"""
Streaming support for the Cortex Agent event stream.

- SSE line decoding
- Delta content accumulation
- Incremental byte stream consumption
"""

from __future__ import annotations

from .models import AccumulatorState, Citation, StreamResult
from .parser import ContentReducer, DeltaDecoder, StreamConsumer

__all__ = [
    "AccumulatorState",
    "Citation",
    "ContentReducer",
    "DeltaDecoder",
    "StreamConsumer",
    "StreamResult",
]
