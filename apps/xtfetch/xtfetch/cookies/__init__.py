"""Cookie parsing, masking, and pool selection rules.

Selection rules live in ``xtfetch.cookies.selection``; import them from there.
"""

from xtfetch.cookies.parser import (
    extract_user_id,
    mask_cookie,
    parse_cookie,
    validate_cookie,
)

__all__ = ["extract_user_id", "mask_cookie", "parse_cookie", "validate_cookie"]
