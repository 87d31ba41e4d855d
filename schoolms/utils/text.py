"""String helpers for database queries"""

LIKE_ESCAPE = "\\"


def contains_pattern(value: str) -> str:
    """
    ILIKE pattern matching value anywhere, with wildcards in value taken literally.

    Use together with ``escape=LIKE_ESCAPE``.
    """
    escaped = (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
