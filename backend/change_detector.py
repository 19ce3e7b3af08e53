"""
Compare two analysis runs for the same company and attach week-over-week changes.
Used by the analysis history to fill CompetitorRanking.weekly_change.
"""

from __future__ import annotations

from schemas import CompetitorRanking


def normalize_base_url(url: str) -> str:
    """Normalize base URL for history key: lowercase, no scheme, no www., no trailing slash."""
    u = (url or "").strip().lower()
    for prefix in ("https://", "http://"):
        if u.startswith(prefix):
            u = u[len(prefix):]
    if u.startswith("www."):
        u = u[4:]
    return u.rstrip("/")


def _ranking_key(name: str) -> str:
    return (name or "").strip().lower()


def _visibility(ranking: object) -> float | None:
    """visibility_score from a CompetitorRanking or its dict dump."""
    if isinstance(ranking, dict):
        value = ranking.get("visibility_score")
    else:
        value = getattr(ranking, "visibility_score", None)
    return float(value) if value is not None else None


def _name(ranking: object) -> str:
    return ranking.get("name", "") if isinstance(ranking, dict) else getattr(ranking, "name", "")


def apply_weekly_change(
    current: list[CompetitorRanking],
    previous: list[CompetitorRanking] | list[dict] | None,
) -> list[CompetitorRanking]:
    """
    Return copies of current with weekly_change = visibility delta against previous.
    Companies absent from the previous run keep weekly_change=None.
    """
    if not previous:
        return [r.model_copy() for r in current]
    previous_by_name = {_ranking_key(_name(p)): _visibility(p) for p in previous}
    out: list[CompetitorRanking] = []
    for r in current:
        old = previous_by_name.get(_ranking_key(r.name))
        change = None if old is None else round(r.visibility_score - old, 1)
        out.append(r.model_copy(update={"weekly_change": change}))
    return out


def find_previous_rankings(history: dict[str, list[dict]], url: str) -> list[dict] | None:
    """Latest recorded rankings for the same company URL, or None."""
    entries = history.get(normalize_base_url(url)) or []
    if not entries:
        return None
    return entries[-1].get("competitors")


def record_rankings(
    history: dict[str, list[dict]],
    url: str,
    timestamp: str,
    rankings: list[CompetitorRanking],
    overall_score: float,
) -> None:
    history.setdefault(normalize_base_url(url), []).append(
        {
            "timestamp": timestamp,
            "overall_score": overall_score,
            "competitors": [r.model_dump() for r in rankings],
        }
    )
