"""
Bónus e comissões semanais.

O motor de acertos apenas soma os valores devolvidos por um BonusAggregator;
a elegibilidade é decidida aqui (ou numa implementação alternativa).
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from settlements.utils import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class BonusBundle:
    bonus_meta_amount: Decimal = ZERO
    bonus_referral_amount: Decimal = ZERO
    commission_amount: Decimal = ZERO
    pending_details: list = field(default_factory=list)

    @property
    def total_bonus_amount(self):
        return round2(self.bonus_meta_amount + self.bonus_referral_amount + self.commission_amount)

    @classmethod
    def empty(cls):
        return cls()

    def to_dict(self):
        return {
            'bonus_meta_amount': self.bonus_meta_amount,
            'bonus_referral_amount': self.bonus_referral_amount,
            'commission_amount': self.commission_amount,
            'total_bonus_amount': self.total_bonus_amount,
            'pending_details': list(self.pending_details),
        }


class BonusAggregator:
    """Interface consumida pelo WeeklySettlementCalculator"""

    def get_bonuses(self, driver_id, driver_name, week_id, week_start, gross_earnings, trip_count):
        raise NotImplementedError


class DefaultBonusAggregator(BonusAggregator):
    """
    Bónus calculados a partir da base de dados:
    - meta: soma das DriverGoal ativas atingidas na semana (ganhos ou viagens)
    - indicação: valor configurado por indicado aprovado com as semanas pagas mínimas
    - comissão: percentagem dos ganhos brutos definida no perfil
    """

    def __init__(self, finance_settings):
        self.finance_settings = finance_settings

    def get_bonuses(self, driver_id, driver_name, week_id, week_start, gross_earnings, trip_count):
        from drivers_app.models import DriverProfile

        driver = DriverProfile.objects.get(pk=driver_id)
        gross = to_decimal(gross_earnings)
        bundle = BonusBundle()

        bundle.bonus_meta_amount = self._goal_bonus(driver, week_start, gross, trip_count, bundle)
        bundle.bonus_referral_amount = self._referral_bonus(driver, bundle)
        bundle.commission_amount = self._commission(driver, gross)

        if bundle.total_bonus_amount > 0:
            logger.info(
                f"   🎯 Bónus {driver_name} ({week_id}): meta=€{bundle.bonus_meta_amount}, "
                f"indicação=€{bundle.bonus_referral_amount}, comissão=€{bundle.commission_amount}"
            )
        return bundle

    def _goal_bonus(self, driver, week_start, gross, trip_count, bundle):
        """Soma o bónus de todas as metas ativas atingidas na semana"""
        total = ZERO
        goals = driver.goals.filter(status='ACTIVE').order_by('created_at', 'pk')
        for goal in goals:
            if goal.starts_on and week_start and week_start < goal.starts_on:
                continue

            target = to_decimal(goal.weekly_target)
            current = Decimal(trip_count or 0) if goal.criterion == 'TRIPS' else gross

            if current < target:
                bundle.pending_details.append({
                    'type': 'META',
                    'goal_id': goal.pk,
                    'criterion': goal.criterion,
                    'description': goal.description or f"Meta {goal.get_criterion_display()} {target}",
                    'target': target,
                    'current': current,
                    'missing': round2(target - current),
                })
                continue

            if goal.bonus_type == 'PERCENT':
                total += round2(gross * to_decimal(goal.bonus_amount) / Decimal('100'))
            else:
                total += round2(goal.bonus_amount)
        return round2(total)

    def _referral_bonus(self, driver, bundle):
        """
        Bónus por cada indicado aprovado que já tenha o mínimo de semanas pagas.
        Indicados ainda não elegíveis ficam em pending_details.
        """
        minimum_weeks = self.finance_settings.referral_min_weeks
        eligible = 0

        for referral in driver.referrals.all():
            if referral.approved_at is None:
                bundle.pending_details.append({
                    'type': 'INDICACAO',
                    'description': f"Indicação pendente: {referral.nome_completo}",
                    'driver_id': referral.pk,
                })
                continue

            weeks_completed = referral.weekly_settlements.filter(payment_status='PAID').count()
            if weeks_completed >= minimum_weeks:
                eligible += 1
                continue

            bundle.pending_details.append({
                'type': 'INDICACAO',
                'description': f"Indicação a aguardar semanas: {referral.nome_completo}",
                'driver_id': referral.pk,
                'weeks_completed': weeks_completed,
                'minimum_weeks': minimum_weeks,
            })

        return round2(to_decimal(self.finance_settings.referral_bonus_amount) * eligible)

    def _commission(self, driver, gross):
        if not driver.commission_percent:
            return ZERO
        return round2(gross * to_decimal(driver.commission_percent) / Decimal('100'))
