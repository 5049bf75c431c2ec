from datetime import date, datetime
from typing import Union

from kladde.utils.exceptions import ValidationError

DATE_FORMATS = ('%Y-%m-%d', '%d.%m.%Y')


def parse_date(value: Union[str, date], field: str = 'date') -> date:
    """Accept a date, ISO ``YYYY-MM-DD`` or German ``DD.MM.YYYY``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or '').strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(field, f"unparseable date {value!r}",
                          f"❌ Ungültiges Datum: {value}. Format: JJJJ-MM-TT oder TT.MM.JJJJ")
