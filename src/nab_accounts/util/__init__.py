from .dates import parse_au_date
from .money import normalize_amount, is_normalized_amount

__all__ = ["parse_au_date", "normalize_amount", "is_normalized_amount"]
