"""
Utilitários de semanas ISO e arredondamento monetário.
"""
import re
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from .exceptions import InvalidWeekId

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

_WEEK_ID_RE = re.compile(r'^(\d{4})-W(\d{2})$')


def to_decimal(value):
    """Converte valores vindos da BD/JSON (None, float, str) para Decimal"""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value):
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_week_id(week_id):
    """
    Retorna (segunda-feira, domingo) de uma semana ISO.

    >>> parse_week_id('2024-W10')
    (datetime.date(2024, 3, 4), datetime.date(2024, 3, 10))
    """
    match = _WEEK_ID_RE.match(week_id or '')
    if not match:
        raise InvalidWeekId(f"Semana inválida: {week_id!r} (esperado AAAA-Wnn)")

    year, week = int(match.group(1)), int(match.group(2))
    try:
        week_start = date.fromisocalendar(year, week, 1)
    except ValueError as exc:
        raise InvalidWeekId(f"Semana inválida: {week_id!r} ({exc})") from exc
    return week_start, week_start + timedelta(days=6)


def week_id_for(day):
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"
