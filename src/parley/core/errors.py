"""Parley error hierarchy."""


class ParleyError(Exception):
    """Base class for every error raised by parley."""


class OutputFormatError(ParleyError, ValueError):
    """Typed output could not be decoded or did not match its schema."""

    def __init__(self, message: str, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)


class MessageConsolidationError(ParleyError, AssertionError):
    """A message carried more than one text part; streamed text was not merged."""


class UnknownProviderError(ParleyError, LookupError):
    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(f"Provider {name!r} not found. Available providers: {', '.join(available)}")


class UnsupportedCapabilityError(ParleyError):
    def __init__(self, provider: str, capability: str):
        self.provider = provider
        self.capability = capability
        super().__init__(f"Provider {provider!r} does not support {capability}")


class IterationLimitError(ParleyError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Turn exceeded {limit} model iterations without completing")


class ToolNameConflictError(ParleyError, ValueError):
    """A caller tool uses a name parley reserves for its own synthetic tool."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool name {name!r} is reserved for typed output; rename the tool")
