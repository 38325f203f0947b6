import math
import re

CODE_SPACES_RE = re.compile(r"\s+")


def normalize_code(value):
    """
    Canonical form used to compare equipment codes: trimmed, inner runs of
    whitespace collapsed, upper-cased. None and blank input give "".
    """
    if value is None:
        return ""
    return CODE_SPACES_RE.sub(" ", str(value).strip()).upper()


def is_blank_code(value):
    return normalize_code(value) == ""


def to_number(value):
    """
    Read a form value as a finite float. Blank, unparsable and non-finite
    input reads as 0.0 so half-filled forms never produce NaN downstream.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        out = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return 0.0
        try:
            out = float(text)
        except ValueError:
            return 0.0
    if not math.isfinite(out):
        return 0.0
    return out


def optional_number(value):
    """Like to_number, but keeps "not entered" distinct (None)."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    out = to_number(value)
    if out == 0.0 and not _looks_like_zero(value):
        return None
    return out


def _looks_like_zero(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return math.isfinite(float(value))
    text = str(value).strip().replace(",", ".")
    try:
        return float(text) == 0.0
    except ValueError:
        return False


def non_negative(value):
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def safe_div(num, den):
    if not den or not math.isfinite(den):
        return 0.0
    out = num / den
    return out if math.isfinite(out) else 0.0


def mean_of_positive(values):
    valid = [v for v in values if v > 0]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)
