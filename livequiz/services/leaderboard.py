from typing import Iterable, List, Optional

from livequiz.models import Participant
from livequiz.schemas.messages import LeaderboardEntry


def rank_participants(participants: Iterable[Participant]) -> List[Participant]:
    """Descending by score; ``participants`` must arrive in join order.

    ``sorted`` is stable with ``reverse=True`` too, so equal scores keep
    their join order.
    """
    return sorted(participants, key=lambda p: p.score, reverse=True)


def build_leaderboard(participants: Iterable[Participant], limit: Optional[int] = None) -> List[LeaderboardEntry]:
    ranked = rank_participants(participants)
    if limit is not None:
        ranked = ranked[:limit]
    return [
        LeaderboardEntry(id=p.id, alias=p.alias, score=p.score, rank=idx + 1)
        for idx, p in enumerate(ranked)
    ]


async def leaderboard(store, quiz_id: int, limit: Optional[int] = None) -> List[LeaderboardEntry]:
    """Recompute a session's leaderboard from the record store."""
    participants = await store.get_participants_by_quiz(quiz_id)
    return build_leaderboard(participants, limit=limit)
