"""
Transport-level failures raised by the shared adapters.

The retry layer classifies failures by substring, so every transient error
message here carries one of the markers the retry profiles look for.
"""


class DataSourceUnavailable(Exception):
    """RPC node, health service or database could not be reached."""

    def __init__(self, source: str, detail: str):
        super().__init__(f"{source} unavailable: {detail}")
        self.source = source


class DeliveryFailed(Exception):
    """Outbound message could not be handed to the chat service."""

    def __init__(self, detail: str):
        super().__init__(f"network request failed: {detail}")


class DeliveryRejected(Exception):
    """Chat service refused the message (blocked bot, unknown chat...)."""
