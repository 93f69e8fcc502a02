from collections import namedtuple

CountryStanding = namedtuple(
    "CountryStanding", ["rank", "country", "country_code", "entries", "average", "best"]
)


def ranked(rows):
    """Attach a 1-based ``rank`` to rows already sorted best first."""
    return [dict(row, rank=i) for i, row in enumerate(rows, start=1)]


def country_leaderboard(rows, limit=None):
    """Average score per country, best average first."""
    groups = {}
    for row in rows:
        code = (row.get("country_code") or "").upper()
        score = row.get("split_score")
        if not code or code == "UNKNOWN" or score is None:
            continue
        group = groups.setdefault(code, {"country": row.get("country") or code, "scores": []})
        group["scores"].append(float(score))

    standings = []
    for code, group in groups.items():
        scores = group["scores"]
        standings.append((group["country"], code, len(scores),
                          round(sum(scores) / len(scores), 2), max(scores)))

    standings.sort(key=lambda s: (-s[3], -s[2], s[0]))
    if limit is not None:
        standings = standings[:limit]
    return [CountryStanding(i, *s) for i, s in enumerate(standings, start=1)]
