"""Entity allocator for ISO 10303-21 (STEP) data sections."""

import re
from typing import List, TextIO

_REF = re.compile(r"#(\d+)")
_STRING = re.compile(r"'(?:[^']|'')*'")


class StepWriterError(Exception):
    """Misuse of the entity writer (a programming error, not bad input)."""


class ForwardReferenceError(StepWriterError):
    pass


class EntityWriter:
    """Append STEP entities with sequential ids.

    Ids start at 1 and increase by one per record. A record may only refer
    to ids that were allocated before it, so the data section never holds
    a forward reference.
    """

    def __init__(self) -> None:
        self.entities: List[str] = []

    @property
    def last_id(self) -> int:
        return len(self.entities)

    def add(self, record: str) -> int:
        idx = len(self.entities) + 1
        for ref in _REF.findall(_STRING.sub("", record)):
            if not 0 < int(ref) < idx:
                raise ForwardReferenceError(
                    f"entity #{idx} refers to unallocated #{ref}: {record}"
                )
        self.entities.append(f"#{idx} = {record};")
        return idx

    def count(self, entity_type: str) -> int:
        """Number of records of ``entity_type`` written so far."""
        marker = f"= {entity_type}("
        return sum(1 for e in self.entities if marker in e)

    def write(self, stream: TextIO) -> None:
        for entity in self.entities:
            stream.write(entity + "\n")


def step_string(text: str) -> str:
    """Quote ``text`` as a STEP string literal.

    Apostrophes are doubled, backslashes escaped and anything outside
    printable ASCII is written with the \\X2\\ control directive.
    """
    out = []
    for ch in text:
        code = ord(ch)
        if ch == "'":
            out.append("''")
        elif ch == "\\":
            out.append("\\\\")
        elif 32 <= code < 127:
            out.append(ch)
        elif code <= 0xFFFF:
            out.append(f"\\X2\\{code:04X}\\X0\\")
        else:
            out.append(f"\\X4\\{code:08X}\\X0\\")
    return "'" + "".join(out) + "'"


def format_id_list(ids, *, indent: str = "    ") -> str:
    if not ids:
        return indent
    total = len(ids)
    return "\n".join(
        f"{indent}#{entity}{',' if index + 1 < total else ''}"
        for index, entity in enumerate(ids)
    )
