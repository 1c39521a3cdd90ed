import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def validate_password(password) -> dict:
    """
    Validar fortaleza de la contraseña.
    Retorna {"is_valid": bool, "errors": [str, ...]}.
    """
    result = {"is_valid": True, "errors": []}
    password = password or ""

    if len(password) < 8:
        result["is_valid"] = False
        result["errors"].append("Password must be at least 8 characters long")

    has_upper = re.search(r"[A-Z]", password) is not None
    has_lower = re.search(r"[a-z]", password) is not None
    has_digit = re.search(r"[0-9]", password) is not None
    if not (has_upper and has_lower and has_digit):
        result["is_valid"] = False
        result["errors"].append(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )

    return result


def has_min_length(value, min_length: int) -> bool:
    return bool(value) and len(value) >= min_length
