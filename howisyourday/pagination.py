import math

from howisyourday.shared_data import PAGINATION


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_page_params(args):
    """Read page/limit from a query-args mapping.

    Non-numeric values fall back to the defaults, page is clamped to
    [1, MAX_PAGE] and limit to [1, MAX_LIMIT].
    """
    page = _to_int(args.get("page"), PAGINATION["DEFAULT_PAGE"])
    page = min(max(page, 1), PAGINATION["MAX_PAGE"])
    limit = _to_int(args.get("limit"), PAGINATION["DEFAULT_LIMIT"])
    limit = min(max(limit, 1), PAGINATION["MAX_LIMIT"])
    return page, limit


def page_range(page, limit):
    """Inclusive (first, last) row indexes for a page."""
    offset = (page - 1) * limit
    return offset, offset + limit - 1


def total_pages(total, limit):
    return math.ceil(total / limit) if limit else 0


def paginate(query, page, limit, serialize=None):
    """Run a SQLAlchemy query for one page and wrap it in the list envelope.

    The count is taken over the unordered query so the total is exact for
    the filters applied, independent of the page requested.
    """
    offset, _ = page_range(page, limit)
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()

    if serialize is not None:
        rows = [serialize(row) for row in rows]

    return {
        "data": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages(total, limit),
        },
    }
