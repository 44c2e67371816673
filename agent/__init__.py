"""Demo turn sources

Provides DemoThreadServer, a model-free ThreadServer that exercises every
event kind: streamed assistant text, streamed widgets, client tool calls,
custom errors and widget actions.

## Example usage

    from agent import DemoThreadServer
    from store import InMemoryStore

    server = DemoThreadServer(InMemoryStore())
    result = await server.process(
        {"type": "threads.create", "params": {"input": {"content": [{"text": "/widget"}]}}},
        {"user_id": "anonymous"},
    )
    async for frame in result:
        print(frame)
"""

from .demo import ACKNOWLEDGE_ACTION, DemoThreadServer, greeting_card, message_text

__all__ = [
    "ACKNOWLEDGE_ACTION",
    "DemoThreadServer",
    "greeting_card",
    "message_text",
]
