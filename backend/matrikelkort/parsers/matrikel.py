from typing import Iterable, List, Optional, Tuple

from ..models import MalformedEntry, ParcelIdentifier

LIST_SEPARATOR = ";"
CODE_SEPARATOR = ":"


class MalformedIdentifierError(ValueError):
    """Raised when a token is not of the form 'ejerlavskode:matrikelnummer'."""

    def __init__(self, raw: str, reason: str):
        super().__init__(reason)
        self.raw = raw


def parse_identifier(token: str) -> ParcelIdentifier:
    """Parse a single 'ejerlav:matrikel' token, e.g. '2000174:1695i'."""
    raw = token.strip()
    if not raw:
        raise MalformedIdentifierError(token, "Empty parcel identifier")

    if CODE_SEPARATOR not in raw:
        raise MalformedIdentifierError(
            raw, "Expected 'ejerlavskode:matrikelnummer', e.g. '2000174:1695i'"
        )

    ejerlav, matrikel = (part.strip() for part in raw.split(CODE_SEPARATOR, 1))
    if not ejerlav:
        raise MalformedIdentifierError(raw, "Missing ejerlav code")
    if not matrikel:
        raise MalformedIdentifierError(raw, "Missing matrikel number")
    if CODE_SEPARATOR in matrikel:
        raise MalformedIdentifierError(raw, "Too many ':' separators")

    return ParcelIdentifier(ejerlav=ejerlav, matrikel=matrikel, raw=raw)


def parse_matrikel_list(
    raw_text: Optional[str],
) -> Tuple[List[ParcelIdentifier], List[MalformedEntry]]:
    """Split a ';' separated identifier list into parsed and rejected entries.

    Order of the input is kept in both lists. A missing or blank list is not
    an error, it simply requests no overlay.
    """
    valid: List[ParcelIdentifier] = []
    malformed: List[MalformedEntry] = []

    if not raw_text:
        return valid, malformed

    tokens = [token.strip() for token in raw_text.split(LIST_SEPARATOR)]
    for token in tokens:
        if not token:
            continue
        try:
            valid.append(parse_identifier(token))
        except MalformedIdentifierError as exc:
            malformed.append(MalformedEntry(raw=exc.raw, error=str(exc)))

    return valid, malformed


def format_matrikel_list(identifiers: Iterable[ParcelIdentifier]) -> str:
    return LIST_SEPARATOR.join(identifier.key for identifier in identifiers)
