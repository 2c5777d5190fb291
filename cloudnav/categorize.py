from typing import List, Optional, Tuple

from .models import Category

INBOX_KEYWORDS = ["收集", "未分类", "inbox", "temp", "later"]
COMMON_CATEGORY_ID = "common"
COMMON_CATEGORY_NAME = "默认"


def find_category(categories: List[Category], category_id: str) -> Optional[Category]:
    return next((c for c in categories if c.id == category_id), None)


def resolve_category(
    categories: List[Category], requested_id: Optional[str] = None
) -> Tuple[str, str]:
    """
    Pick the category a new link goes into, returning ``(id, name)``.

    An explicitly requested category wins when it exists. Otherwise the
    first "inbox"-like category is used, then ``common``, then whatever
    comes first. With no categories at all the link lands in ``common``.
    """
    if requested_id:
        explicit = find_category(categories, requested_id)
        if explicit:
            return explicit.id, explicit.name

    if not categories:
        return COMMON_CATEGORY_ID, COMMON_CATEGORY_NAME

    for c in categories:
        name = c.name.lower()
        if any(k in name for k in INBOX_KEYWORDS):
            return c.id, c.name

    common = find_category(categories, COMMON_CATEGORY_ID)
    if common:
        return common.id, common.name

    return categories[0].id, categories[0].name
