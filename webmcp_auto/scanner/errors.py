class WebMCPAutoError(Exception):
    """Base error for the instrumentor."""


class HostError(WebMCPAutoError):
    """A document host could not perform a capability call."""


class ToolNotFoundError(WebMCPAutoError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no tool registered under {name!r}")
        self.name = name
