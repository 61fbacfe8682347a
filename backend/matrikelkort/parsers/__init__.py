from .matrikel import (
    MalformedIdentifierError,
    format_matrikel_list,
    parse_identifier,
    parse_matrikel_list,
)
from .view import parse_center, parse_zoom

__all__ = [
    "MalformedIdentifierError",
    "format_matrikel_list",
    "parse_identifier",
    "parse_matrikel_list",
    "parse_center",
    "parse_zoom",
]
