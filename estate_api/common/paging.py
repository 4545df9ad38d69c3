# estate_api/common/paging.py
from flask import request

DEFAULT_SIZE = 20
MAX_SIZE = 100


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def page_args():
    """?page (1-based) and ?size, with ?limit accepted for size; size clamped to [1, MAX_SIZE]."""
    page = max(_int_arg("page", 1), 1)
    size = _int_arg("size", _int_arg("limit", DEFAULT_SIZE))
    return page, max(1, min(size, MAX_SIZE))


def search_term():
    q = (request.args.get("q") or "").strip()
    return q or None


def ordered(qry, allowed: dict, *default):
    """
    ?sort=name,-created_at over the whitelisted columns in ``allowed``.
    Unknown keys are ignored; with nothing usable the ``default`` clauses apply.
    """
    clauses = []
    for part in (request.args.get("sort") or "").split(","):
        key = part.strip()
        desc = key.startswith("-")
        col = allowed.get(key.lstrip("-"))
        if col is not None:
            clauses.append(col.desc() if desc else col.asc())
    return qry.order_by(*(clauses or default))


def paginate(qry):
    """Apply ?page/&size to a query; returns (items, meta)."""
    page, size = page_args()
    total = qry.count()
    items = qry.offset((page - 1) * size).limit(size).all()
    return items, {"page": page, "size": size, "total": total}
