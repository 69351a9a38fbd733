from flask import current_app


def page_args(args, default_limit=None):
    """Read ``page``/``limit`` query args, falling back on bad input."""
    if default_limit is None:
        default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    try:
        page = int(args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    return max(page, 1), min(max(limit, 1), 100)


def paginate_query(query, page, limit):
    items = query.offset((page - 1) * limit).limit(limit).all()
    total = query.order_by(None).count()
    pages = (total + limit - 1) // limit
    return items, {"page": page, "limit": limit, "total": total, "pages": pages}
