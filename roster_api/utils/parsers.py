"""Roster file parsing.

Converts an uploaded comma-delimited roster into a normalized, sorted
student list. The file format is deliberately loose: a header line
followed by `name,id[,anything else]` rows. Rows that do not carry at
least a name and an id column are skipped rather than rejected.
"""

import unicodedata
from typing import Dict, Iterable, List, Union

from ..errors import ReadError
from ..models import DEFAULT_SUBJECTS, default_marks


def decode_roster(b: Union[bytes, str]) -> str:
    """Decode uploaded bytes as UTF-8 text, raising `ReadError` on failure."""
    if isinstance(b, str):
        return b
    try:
        return b.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise ReadError(f'Ralat membaca fail CSV: {e}') from e


def collation_key(name: str):
    """Sort key approximating a locale-aware string comparison.

    Letters compare ignoring accents and case first, then accents, then
    lowercase before uppercase; raw code points break any remaining tie.
    Punctuation is ordered by code point too, so `O'Neil` sorts before
    `O-Neil` where ICU collation would put the hyphen first.
    """
    decomposed = unicodedata.normalize('NFD', name)
    base = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), decomposed.casefold(), name.swapcase(), name)


def parse_roster(content: Union[bytes, str], subjects: Iterable[str] = DEFAULT_SUBJECTS) -> List[Dict]:
    """Parse roster content into student records sorted by name.

    The first non-blank line is always the header. Each record is
    `{'name', 'external_id', 'marks'}` where `marks` holds every subject
    code with no value recorded yet.
    """
    text = decode_roster(content)
    subjects = tuple(subjects)
    lines = [l for l in text.split('\n') if l.strip()]
    out = []
    for line in lines[1:]:
        fields = [f.strip() for f in line.split(',')]
        if len(fields) < 2 or not fields[0]:
            continue
        out.append({
            'name': fields[0],
            'external_id': fields[1],
            'marks': default_marks(subjects),
        })
    out.sort(key=lambda s: collation_key(s['name']))
    return out
