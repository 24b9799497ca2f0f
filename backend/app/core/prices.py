import re
from typing import Any, Optional


def format_eur(price: float) -> str:
    """
    German display format: 1234.5 -> "1.234,50 €"
    """
    s = f"{price:,.2f}"
    s = s.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{s} €"


def parse_display_price(price: Optional[str]) -> Optional[float]:
    """
    Loose parse for API display strings like "1.234,56 €", "499.99 EUR" or "$1,299.00".
    Takes the first number. With both separators present the last one is the
    decimal mark; a lone separator followed by groups of three digits is a
    thousands separator.
    """
    if not price:
        return None
    m = re.search(r"\d[\d.,]*", str(price))
    if not m:
        return None
    s = m.group(0).rstrip(".,")

    if "," in s and "." in s:
        decimal = "," if s.rfind(",") > s.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        s = s.replace(thousands, "").replace(decimal, ".")
    elif "," in s or "." in s:
        sep = "," if "," in s else "."
        if re.fullmatch(r"\d{1,3}(?:" + re.escape(sep) + r"\d{3})+", s):
            s = s.replace(sep, "")
        else:
            s = s.replace(sep, ".")

    try:
        return float(s)
    except ValueError:
        return None


def parse_european_price(text: Optional[str]) -> Optional[float]:
    """
    Converts scraped strings like "1.234,56 €", "ab 499,- €", "89,99" to float.
    Dots are thousand separators, the comma is the decimal separator.
    Returns None for anything that does not end up strictly positive.
    """
    if not text:
        return None
    s = re.sub(r"[^\d,.\-]", "", str(text))
    s = s.replace(".", "").replace(",", ".")
    s = s.rstrip("-").rstrip(".")
    if not s:
        return None
    try:
        value = float(s)
    except ValueError:
        return None
    return value if value > 0 else None


def coerce_amount(value: Any) -> Optional[float]:
    """
    Structured numeric amount from JSON (int/float or numeric string).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None
