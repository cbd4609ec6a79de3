__version__ = "0.1"

from .uri import Span, Split, UriValue
