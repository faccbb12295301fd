"""Runtime finance settings fed by the ``FinanceConfiguration`` table."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

_CONFIG_CACHE_KEY = "system_config:finance_settings"


@dataclass(frozen=True)
class FinanceSettings:
    admin_fee_percent: Decimal
    admin_fee_fixed_default: Decimal
    admin_fee_base: str
    vat_percent: Decimal
    referral_bonus_amount: Decimal
    source: str = "database"
    referral_min_weeks: int = 4


def default_finance_settings() -> FinanceSettings:
    """Valores por omissão definidos em ``settings.SETTLEMENTS``."""
    conf = settings.SETTLEMENTS
    return FinanceSettings(
        admin_fee_percent=Decimal(str(conf.get('ADMIN_FEE_PERCENT', '7'))),
        admin_fee_fixed_default=Decimal(str(conf.get('ADMIN_FEE_FIXED_DEFAULT', '25'))),
        admin_fee_base='GANHOS_MENOS_IVA',
        vat_percent=Decimal(str(conf.get('VAT_PERCENT', '6'))),
        referral_bonus_amount=Decimal(str(conf.get('REFERRAL_BONUS_AMOUNT', '25'))),
        source="defaults",
        referral_min_weeks=int(conf.get('REFERRAL_MIN_WEEKS', 4)),
    )


def load_finance_settings() -> FinanceSettings:
    """
    Return the finance settings from cache or the database.

    Cache errors fall through to the database; database errors fall back to
    ``default_finance_settings()``.
    """
    cache_available = True
    try:
        cached = cache.get(_CONFIG_CACHE_KEY)
    except Exception as exc:
        logger.warning(f"⚠️ Cache indisponível ao ler a configuração financeira: {exc}")
        cached = None
        cache_available = False

    if cached is not None:
        return cached

    try:
        finance_settings = _load_from_database()
    except Exception as exc:
        logger.warning(f"⚠️ Configuração financeira indisponível, a usar valores por omissão: {exc}")
        return default_finance_settings()

    if cache_available:
        try:
            cache.set(_CONFIG_CACHE_KEY, finance_settings, settings.SETTLEMENTS.get('CONFIG_CACHE_TTL', 300))
        except Exception as exc:
            logger.warning(f"⚠️ Não foi possível guardar a configuração financeira em cache: {exc}")
    return finance_settings


def invalidate_finance_settings() -> None:
    try:
        cache.delete(_CONFIG_CACHE_KEY)
    except Exception as exc:
        logger.warning(f"⚠️ Não foi possível invalidar a configuração financeira em cache: {exc}")


def _load_from_database() -> FinanceSettings:
    from system_config.models import FinanceConfiguration

    record = FinanceConfiguration.get_config()
    return FinanceSettings(
        admin_fee_percent=Decimal(record.admin_fee_percent),
        admin_fee_fixed_default=Decimal(record.admin_fee_fixed_default),
        admin_fee_base=record.admin_fee_base,
        vat_percent=Decimal(record.vat_percent),
        referral_bonus_amount=Decimal(record.referral_bonus_amount),
        referral_min_weeks=record.referral_min_weeks,
    )
