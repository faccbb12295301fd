"""Dados de apoio aos testes de acertos"""
from decimal import Decimal

from django.utils import timezone

from drivers_app.models import DriverProfile
from settlements.models import WeeklyPlatformEntry, WeeklySettlement
from settlements.utils import parse_week_id
from system_config.services.finance_config import FinanceSettings

WEEK_ID = '2024-W10'


def finance_settings(**overrides):
    values = {
        'admin_fee_percent': Decimal('7'),
        'admin_fee_fixed_default': Decimal('25'),
        'admin_fee_base': 'GANHOS_MENOS_IVA',
        'vat_percent': Decimal('6'),
        'referral_bonus_amount': Decimal('25'),
        'source': 'tests',
    }
    values.update(overrides)
    return FinanceSettings(**values)


def create_driver(nome='Ana Silva', **fields):
    values = {
        'nome_completo': nome,
        'driver_type': 'AFFILIATE',
        'status': 'ACTIVE',
    }
    values.update(fields)
    return DriverProfile.objects.create(**values)


def add_entry(platform, value, driver=None, week_id=WEEK_ID, **fields):
    week_start, week_end = parse_week_id(week_id)
    values = {
        'platform': platform,
        'week_id': week_id,
        'week_start': week_start,
        'week_end': week_end,
        'total_value': Decimal(str(value)),
    }
    if driver is not None:
        values['source_driver_id'] = str(driver.pk)
    values.update(fields)
    return WeeklyPlatformEntry.objects.create(**values)


def add_ana_week(driver, week_id=WEEK_ID):
    """Uber 400, Bolt 200, combustível 60, portagens 20"""
    add_entry('UBER', '400.00', driver, week_id=week_id, trips=40)
    add_entry('BOLT', '200.00', driver, week_id=week_id, trips=20)
    add_entry('FUEL_CARD', '60.00', driver, week_id=week_id)
    add_entry('TOLL_CARD', '20.00', driver, week_id=week_id)


def add_paid_weeks(driver, count, first_week=1, year=2024):
    """Acertos PAGOS em semanas consecutivas a partir de ``first_week``"""
    settlements = []
    for week in range(first_week, first_week + count):
        week_id = f"{year}-W{week:02d}"
        week_start, week_end = parse_week_id(week_id)
        settlements.append(WeeklySettlement.objects.create(
            record_id=WeeklySettlement.build_record_id(driver.pk, week_id),
            driver=driver,
            driver_name=driver.nome_completo,
            driver_type=driver.driver_type,
            week_id=week_id,
            week_start=week_start,
            week_end=week_end,
            payment_status='PAID',
            paid_at=timezone.now(),
        ))
    return settlements
