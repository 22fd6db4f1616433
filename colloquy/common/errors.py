"""Error kinds shared by the orchestrator, stores and HTTP boundary."""


class ColloquyError(Exception):
    """Base class for all Colloquy errors."""


class ValidationError(ColloquyError):
    """A request is missing required input. Maps to HTTP 400."""


class ProviderError(ColloquyError):
    """The completion provider failed or could not be reached. Maps to HTTP 500."""


class StoreError(ColloquyError):
    """The history store failed to read or write."""
