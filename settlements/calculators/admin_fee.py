"""
Taxa administrativa (despesas adm) de um acerto semanal.

Função pura: recebe o motorista, a configuração financeira carregada no início
do processamento e o contexto de valores da semana.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from settlements.utils import ZERO, to_decimal

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class AdminFeeContext:
    ganhos_brutos: Decimal
    iva_valor: Decimal
    combustivel: Decimal = ZERO
    portagens: Decimal = ZERO
    aluguel: Decimal = ZERO
    financiamento_total: Decimal = ZERO
    week_start: Optional[date] = None

    @property
    def ganhos_menos_iva(self):
        return self.ganhos_brutos - self.iva_valor

    @property
    def despesas(self):
        return self.combustivel + self.portagens + self.aluguel + self.financiamento_total


@dataclass(frozen=True)
class AdminFeeResult:
    fee: Decimal
    base_used: Decimal
    mode: str
    value: Decimal
    exempt: bool = False


def resolve_fee_base(base, context):
    if base == 'GANHOS_BRUTOS':
        return context.ganhos_brutos
    if base == 'GANHOS_BRUTOS_MENOS_DESPESAS':
        return max(ZERO, context.ganhos_brutos - context.despesas)
    if base == 'GANHOS_MENOS_IVA_MENOS_DESPESAS':
        return max(ZERO, context.ganhos_menos_iva - context.despesas)
    return max(ZERO, context.ganhos_menos_iva)


def _clamp_percent(value):
    return min(HUNDRED, max(ZERO, to_decimal(value)))


def evaluate_admin_fee(driver, config, context):
    """
    Regras, por ordem:
    1. motorista isento na semana -> 0
    2. taxa fixa do motorista (ou fixa por omissão da configuração)
    3. percentual do motorista sobre a base configurada
    4. percentual global sobre a base configurada
    """
    base_value = resolve_fee_base(config.admin_fee_base, context)

    if driver.is_admin_fee_exempt(context.week_start):
        return AdminFeeResult(fee=ZERO, base_used=base_value, mode='EXEMPT', value=ZERO, exempt=True)

    if driver.admin_fee_mode == 'FIXED':
        value = driver.admin_fee_fixed_value
        if value is None:
            value = config.admin_fee_fixed_default
        fee = max(ZERO, to_decimal(value))
        return AdminFeeResult(fee=fee, base_used=base_value, mode='FIXED', value=fee)

    if driver.admin_fee_mode == 'PERCENT' and driver.admin_fee_percent_value is not None:
        percent = _clamp_percent(driver.admin_fee_percent_value)
    else:
        percent = _clamp_percent(config.admin_fee_percent)

    fee = max(ZERO, base_value * percent / HUNDRED)
    return AdminFeeResult(fee=fee, base_used=base_value, mode='PERCENT', value=percent)


def compute_admin_fee(driver, config, context):
    """Valor da taxa (não arredondado; quem chama arredonda a 2 casas)"""
    return evaluate_admin_fee(driver, config, context).fee
