def pagination_meta(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }


def list_response(items: list, total: int, limit: int, offset: int) -> dict:
    return {
        "success": True,
        "data": items,
        "pagination": pagination_meta(total, limit, offset),
    }


def item_response(data, message: str | None = None) -> dict:
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return payload


def message_response(message: str) -> dict:
    return {"success": True, "message": message}


class ListResponseMixin:
    @classmethod
    def list_response(cls, db, *, limit: int, offset: int, **kwargs):
        order_by = kwargs.pop("order_by", cls.default_order_by)
        order_dir = kwargs.pop("order_dir", cls.default_order_dir)
        total = cls.filtered_query(db, **kwargs).count()
        items = cls.list(
            db, order_by=order_by, order_dir=order_dir, limit=limit, offset=offset, **kwargs
        )
        return list_response(items, total, limit, offset)
