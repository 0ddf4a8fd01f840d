import re
from typing import List, Tuple

from flask import current_app

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")

MAX_LEN = 128

def validate_password(pw) -> Tuple[bool, List[str]]:
    if not isinstance(pw, str):
        return False, ["Password must be a string"]

    min_len = int(current_app.config.get("PASSWORD_MIN_LEN", 8))
    errors: List[str] = []
    if len(pw) < min_len:
        errors.append(f"Password must be at least {min_len} characters")
    if len(pw) > MAX_LEN:
        errors.append(f"Password must be at most {MAX_LEN} characters")
    if not _LETTER.search(pw):
        errors.append("Password must include at least 1 letter")
    if not _DIGIT.search(pw):
        errors.append("Password must include at least 1 number")

    return not errors, errors
