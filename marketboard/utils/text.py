# marketboard/utils/text.py
from ..errors import ValidationError


def clean_text(value, name: str) -> str:
    """Stripped string, "" for None. Anything that is not text is a 400."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be text")
    return value.strip()
