"""Server-Sent Events encoding for agent event streams."""
from __future__ import annotations

import json
from typing import Any, AsyncIterable, AsyncIterator, Dict, List

from .events import AgentEvent

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_sse(event: AgentEvent) -> str:
    """Encode one event as an SSE frame named after its type."""
    data = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
    return f"event: {event.type}\ndata: {data}\n\n"


async def sse_stream(events: AsyncIterable[AgentEvent]) -> AsyncIterator[str]:
    """Relay an event stream as SSE frames, one frame per event."""
    async for event in events:
        yield encode_sse(event)


def parse_sse(text: str) -> List[Dict[str, Any]]:
    """Decode a buffer of SSE frames back into event payloads.

    Multi-line ``data:`` fields are joined with newlines before JSON decoding,
    and frames without data (comments, keep-alives) are skipped.
    """
    payloads: List[Dict[str, Any]] = []
    for frame in text.replace("\r\n", "\n").split("\n\n"):
        data_lines = [
            line[len("data:"):].lstrip() for line in frame.split("\n") if line.startswith("data:")
        ]
        if not data_lines:
            continue
        payloads.append(json.loads("\n".join(data_lines)))
    return payloads
