"""
SKA Workbench — Group Member Substitution
"""

from __future__ import annotations

from typing import Sequence


def substitute_member(members: Sequence[str], outgoing: str, replacement: str) -> list[str]:
    """
    Return a new member list with ``outgoing`` replaced by ``replacement``.

    The replacement takes outgoing's first slot when it is not already in
    the list; otherwise outgoing is simply dropped. The result never
    contains outgoing and never contains replacement twice.

    >>> substitute_member(["A1", "B1", "C1"], "A1", "D1")
    ['D1', 'B1', 'C1']
    >>> substitute_member(["A1", "B1", "D1"], "A1", "D1")
    ['B1', 'D1']
    """
    if outgoing not in members or outgoing == replacement:
        return list(members)

    keep_slot = replacement not in members
    result: list[str] = []
    for cn in members:
        if cn == outgoing:
            if keep_slot:
                result.append(replacement)
                keep_slot = False
            continue
        result.append(cn)
    return result
