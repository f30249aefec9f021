"""
Exception hierarchy for the email pipeline
"""


class AskEmailError(Exception):
    """Base class for pipeline errors"""


class ParseError(AskEmailError):
    """The inbound message could not be parsed"""


class MissingSenderError(AskEmailError):
    """The inbound message has no usable reply address"""


class EmbeddingError(AskEmailError):
    """The embedding service returned no vector"""


class DeliveryError(AskEmailError):
    """The outbound transport failed to send the reply"""

    def __init__(self, transport: str, message: str):
        super().__init__(f"{transport} delivery failed: {message}")
        self.transport = transport
