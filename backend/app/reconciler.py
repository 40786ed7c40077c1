from __future__ import annotations

from typing import List, Optional, Sequence

from app.models import Match, normalize_match_id


def reconcile(live: Optional[Sequence[Match]], static: Sequence[Match]) -> List[Match]:
    """Merge live and static match lists.

    ``live=None`` means the live source was unavailable and the static list
    is returned as is. Otherwise every live record is kept in order and the
    static records whose id is not already live are appended in their own
    order, so the live copy wins any id collision.
    """
    if live is None:
        return list(static)

    merged = list(live)
    live_ids = {normalize_match_id(match.id) for match in live}
    for match in static:
        if normalize_match_id(match.id) not in live_ids:
            merged.append(match)
    return merged
