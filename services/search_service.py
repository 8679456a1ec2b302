from typing import Iterable, List, Optional

from models.company import Company
from services.availability_service import store_guard


def escape_like(text: str) -> str:
    """Make % and _ in user input match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle in (haystack or "").lower()


def matches_text(company, text: str) -> bool:
    """Empty text matches everything; otherwise substring match on name, description, category or any tag."""
    needle = (text or "").strip().lower()
    if not needle:
        return True
    return (
        _contains(company.name, needle)
        or _contains(company.description, needle)
        or _contains(company.category, needle)
        or any(_contains(tag, needle) for tag in (company.tags or []))
    )


def matches_tags(company, tags: Iterable[str]) -> bool:
    wanted = {t for t in (tags or []) if t}
    if not wanted:
        return True
    # overlap, not subset; tags compare exactly
    return bool(wanted.intersection(company.tags or []))


def search_companies(text: str = "", tags: Iterable[str] = (), city: str = "") -> List[Company]:
    q = Company.query.filter(Company.is_active.is_(True))

    city = (city or "").strip()
    if city:
        q = q.filter(Company.city.ilike(f"%{escape_like(city)}%", escape="\\"))

    with store_guard("companies"):
        rows = q.order_by(Company.created_at.desc(), Company.id.desc()).all()

    # tags live in a JSON column, so text/tag matching happens here rather than in SQL
    tags = list(tags or [])
    return [c for c in rows if matches_text(c, text) and matches_tags(c, tags)]
