"""Remote function provider."""

from genba.providers.functions import FunctionsClient

__all__ = ["FunctionsClient"]
