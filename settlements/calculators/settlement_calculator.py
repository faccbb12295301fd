"""
WeeklySettlementCalculator: motor de cálculo dos acertos semanais (repasse).

Pipeline por motorista:
    ganhos (Uber + Bolt) -> IVA -> financiamento -> taxa adm
    -> combustível / portagens / aluguel -> bónus e comissão -> repasse
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from functools import partial
from typing import Optional

from django.utils import timezone

from settlements.utils import ZERO, parse_week_id, round2, to_decimal

from .admin_fee import AdminFeeContext, evaluate_admin_fee
from .bonus_aggregator import BonusBundle, DefaultBonusAggregator
from .financing_calculator import FinancingLedger

logger = logging.getLogger(__name__)

EARNING_PLATFORMS = ('UBER', 'BOLT')


@dataclass
class SettlementResult:
    success: bool
    driver_id: int
    driver_name: str
    week_id: str
    outcome: str = ''
    repasse: Optional[Decimal] = None
    record_id: str = ''
    error: str = ''

    def to_dict(self):
        return {
            'success': self.success,
            'driver_id': self.driver_id,
            'driver_name': self.driver_name,
            'week_id': self.week_id,
            'outcome': self.outcome,
            'repasse': self.repasse,
            'record_id': self.record_id,
            'error': self.error,
        }


class WeeklySettlementCalculator:
    """
    Calcula os acertos de uma semana a partir dos WeeklyPlatformEntry.

    A configuração financeira e o agregador de bónus podem ser injetados
    (testes, simulações); caso contrário são carregados uma vez por execução.
    """

    def __init__(self, finance_settings=None, bonus_aggregator=None, gate=None, ledger=None):
        self.finance_settings = finance_settings
        self.bonus_aggregator = bonus_aggregator
        self.gate = gate
        self.ledger = ledger or FinancingLedger()
        self.debug = []
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats():
        return {
            'entries': 0,
            'direct': 0,
            'fallback': 0,
            'skipped': 0,
            'drivers': 0,
            'inactive': 0,
            'success': 0,
            'failed': 0,
        }

    def resolve_collaborators(self, finance_settings=None, bonus_aggregator=None):
        """Configuração financeira e agregador de bónus usados numa execução"""
        if finance_settings is None:
            finance_settings = self.finance_settings
        if finance_settings is None:
            from system_config.services.finance_config import load_finance_settings
            finance_settings = load_finance_settings()

        if bonus_aggregator is None:
            bonus_aggregator = self.bonus_aggregator or DefaultBonusAggregator(finance_settings)
        return finance_settings, bonus_aggregator

    def process_week(self, week_id, driver_id=None, force_refresh=False):
        """
        Processa todos os motoristas com registos na semana.

        Args:
            week_id: str ('2024-W10')
            driver_id: processar apenas este motorista
            force_refresh: recalcular acertos PENDING já gravados

        Returns:
            list[SettlementResult] (sucessos e falhas)
        """
        from settlements.services import SettlementGate

        parse_week_id(week_id)
        self.stats = self._empty_stats()
        self.debug = []
        gate = self.gate or SettlementGate()

        grouped = self.group_week_entries(week_id, driver_id=driver_id)
        if not grouped:
            self.debug.append(f"Sem registos para {week_id}")
            return []

        # Carregados uma vez por execução
        finance_settings, bonus_aggregator = self.resolve_collaborators()
        self.debug.append(
            f"Configuração: IVA {finance_settings.vat_percent}%, taxa adm {finance_settings.admin_fee_percent}% "
            f"({finance_settings.admin_fee_base}), fonte={finance_settings.source}"
        )

        results = []
        for driver, entries in grouped.values():
            if not driver.is_active:
                self.stats['inactive'] += 1
                logger.info(f"⏭️ Motorista {driver.nome_completo} ({driver.pk}) não está ativo, ignorado")
                self.debug.append(f"Inativo ignorado: {driver.nome_completo}")
                continue

            compute_fn = partial(
                self.compute_settlement, driver, week_id, entries,
                finance_settings=finance_settings, bonus_aggregator=bonus_aggregator,
            )
            try:
                settlement, outcome = gate.get_or_create(driver, week_id, compute_fn, force_refresh=force_refresh)
            except Exception as exc:
                self.stats['failed'] += 1
                logger.exception(f"❌ Erro ao processar {driver.nome_completo} ({driver.pk}) em {week_id}")
                self.debug.append(f"ERRO {driver.nome_completo}: {exc}")
                results.append(SettlementResult(
                    success=False,
                    driver_id=driver.pk,
                    driver_name=driver.nome_completo,
                    week_id=week_id,
                    outcome='failed',
                    error=str(exc),
                ))
                continue

            self.stats['success'] += 1
            self.debug.append(f"{driver.nome_completo}: {outcome} repasse=€{settlement.repasse}")
            results.append(SettlementResult(
                success=True,
                driver_id=driver.pk,
                driver_name=driver.nome_completo,
                week_id=week_id,
                outcome=outcome,
                repasse=settlement.repasse,
                record_id=settlement.record_id,
            ))

        logger.info(
            f"✅ Semana {week_id}: {self.stats['success']} acertos, {self.stats['failed']} falhas, "
            f"{self.stats['inactive']} inativos, {self.stats['skipped']} registos sem motorista"
        )
        return results

    def group_week_entries(self, week_id, driver_id=None):
        """
        Agrupa os registos da semana pelo motorista resolvido.

        Returns:
            OrderedDict {driver.pk: (driver, [entries])}
        """
        from drivers_app.registry import DriverRegistry
        from settlements.models import WeeklyPlatformEntry

        entries = list(WeeklyPlatformEntry.objects.filter(week_id=week_id).order_by('id'))
        self.stats['entries'] = len(entries)
        if not entries:
            logger.info(f"📭 Sem registos semanais para {week_id}")
            return OrderedDict()

        registry = DriverRegistry.load()
        grouped = OrderedDict()

        for entry in entries:
            resolution = registry.resolve(entry)
            if resolution is None:
                self.stats['skipped'] += 1
                logger.warning(
                    f"⚠️ Registo sem motorista: {entry.platform} ref={entry.reference_id or '-'} "
                    f"matrícula={entry.vehicle_plate or '-'} €{entry.total_value}"
                )
                continue

            if resolution.is_fallback:
                self.stats['fallback'] += 1
            else:
                self.stats['direct'] += 1

            driver = resolution.driver
            if driver_id is not None and str(driver.pk) != str(driver_id):
                continue
            grouped.setdefault(driver.pk, (driver, []))[1].append(entry)

        self.stats['drivers'] = len(grouped)
        logger.info(
            f"🔗 {week_id}: {self.stats['direct']} diretos, {self.stats['fallback']} por fallback, "
            f"{self.stats['skipped']} ignorados, {len(grouped)} motoristas"
        )
        self.debug.append(
            f"Mapeamento {week_id}: diretos={self.stats['direct']} fallback={self.stats['fallback']} "
            f"ignorados={self.stats['skipped']}"
        )
        return grouped

    @staticmethod
    def platform_totals(entries):
        """Soma por plataforma: {'UBER': {'count', 'total', 'trips'}, ...}"""
        totals = OrderedDict()
        for entry in entries:
            bucket = totals.setdefault(entry.platform, {'count': 0, 'total': ZERO, 'trips': 0})
            bucket['count'] += 1
            bucket['total'] += to_decimal(entry.total_value)
            bucket['trips'] += entry.trips or 0
        return totals

    @staticmethod
    def platform_data(totals):
        return [
            {
                'platform': platform,
                'count': bucket['count'],
                'total': round2(bucket['total']),
                'trips': bucket['trips'],
            }
            for platform, bucket in totals.items()
        ]

    def compute_settlement(self, driver, week_id, entries, finance_settings=None, bonus_aggregator=None):
        """
        Calcula o acerto de um motorista (sem gravar).

        Returns:
            dict com os campos financeiros de WeeklySettlement
        """
        finance_settings, bonus_aggregator = self.resolve_collaborators(finance_settings, bonus_aggregator)

        if entries:
            week_start, week_end = entries[0].week_start, entries[0].week_end
        else:
            week_start, week_end = parse_week_id(week_id)

        totals = self.platform_totals(entries)

        def total_for(platform):
            return round2(totals.get(platform, {}).get('total', ZERO))

        uber_total = total_for('UBER')
        bolt_total = total_for('BOLT')
        combustivel = total_for('FUEL_CARD')
        viaverde = total_for('TOLL_CARD')
        trip_count = sum(totals.get(platform, {}).get('trips', 0) for platform in EARNING_PLATFORMS)

        ganhos_total = uber_total + bolt_total
        iva_valor = round2(ganhos_total * to_decimal(finance_settings.vat_percent) / Decimal('100'))
        ganhos_menos_iva = ganhos_total - iva_valor

        # Portagens e aluguel só para locatários
        portagens = viaverde if driver.is_renter else ZERO
        aluguel = round2(driver.rental_fee) if driver.is_renter else ZERO

        financing = self.ledger.weekly_summary(driver)

        fee_context = AdminFeeContext(
            ganhos_brutos=ganhos_total,
            iva_valor=iva_valor,
            combustivel=combustivel,
            portagens=portagens,
            aluguel=aluguel,
            financiamento_total=financing.total_cost,
            week_start=week_start,
        )
        fee = evaluate_admin_fee(driver, finance_settings, fee_context)
        despesas_adm = round2(fee.fee)

        bonuses = self._fetch_bonuses(bonus_aggregator, driver, week_id, week_start, ganhos_total, trip_count)

        total_despesas = round2(combustivel + portagens + aluguel + financing.total_cost)
        repasse = round2(
            ganhos_menos_iva
            - despesas_adm
            - total_despesas
            + bonuses.bonus_meta_amount
            + bonuses.bonus_referral_amount
            + bonuses.commission_amount
        )

        self.debug.append(
            f"{driver.nome_completo} {week_id}: ganhos=€{ganhos_total} IVA=€{iva_valor} "
            f"taxa=€{despesas_adm} despesas=€{total_despesas} bónus=€{bonuses.total_bonus_amount} "
            f"repasse=€{repasse}"
        )

        platform_data = self.platform_data(totals)
        financing_details = financing.to_dict()
        data = {
            'driver_name': driver.nome_completo,
            'driver_type': driver.driver_type,
            'week_id': week_id,
            'week_start': week_start,
            'week_end': week_end,
            'uber_total': uber_total,
            'bolt_total': bolt_total,
            'ganhos_total': ganhos_total,
            'iva_valor': iva_valor,
            'ganhos_menos_iva': ganhos_menos_iva,
            'despesas_adm': despesas_adm,
            'combustivel': combustivel,
            'portagens': portagens,
            'viaverde': viaverde,
            'aluguel': aluguel,
            'financing_details': financing_details,
            'total_despesas': total_despesas,
            'bonus_meta_amount': bonuses.bonus_meta_amount,
            'bonus_referral_amount': bonuses.bonus_referral_amount,
            'commission_amount': bonuses.commission_amount,
            'total_bonus_amount': bonuses.total_bonus_amount,
            'bonus_pending': bonuses.pending_details,
            'repasse': repasse,
            'platform_data': platform_data,
            'iban': driver.iban,
            'calculated_at': timezone.now(),
        }

        data['record_snapshot'] = {
            'entries': [
                {
                    'id': entry.pk,
                    'platform': entry.platform,
                    'reference_id': entry.reference_id,
                    'vehicle_plate': entry.vehicle_plate,
                    'total_value': entry.total_value,
                    'trips': entry.trips,
                }
                for entry in entries
            ],
            'config': {
                'vat_percent': finance_settings.vat_percent,
                'admin_fee_percent': finance_settings.admin_fee_percent,
                'admin_fee_fixed_default': finance_settings.admin_fee_fixed_default,
                'admin_fee_base': finance_settings.admin_fee_base,
                'source': finance_settings.source,
            },
            'driver': {
                'id': driver.pk,
                'type': driver.driver_type,
                'rental_fee': driver.rental_fee,
                'admin_fee_mode': driver.admin_fee_mode,
                'commission_percent': driver.commission_percent,
            },
            'admin_fee': {
                'mode': fee.mode,
                'value': fee.value,
                'base': fee.base_used,
                'exempt': fee.exempt,
            },
            'financing': financing_details,
            'bonuses': bonuses.to_dict(),
            'platform_data': platform_data,
            'totals': {
                key: data[key] for key in (
                    'uber_total', 'bolt_total', 'ganhos_total', 'iva_valor', 'ganhos_menos_iva',
                    'despesas_adm', 'combustivel', 'portagens', 'viaverde', 'aluguel',
                    'total_despesas', 'total_bonus_amount', 'repasse',
                )
            },
            'trip_count': trip_count,
        }
        return data

    def _fetch_bonuses(self, bonus_aggregator, driver, week_id, week_start, gross, trip_count):
        try:
            bonuses = bonus_aggregator.get_bonuses(
                driver.pk, driver.nome_completo, week_id, week_start, gross, trip_count
            )
        except Exception as exc:
            logger.warning(f"⚠️ Bónus indisponíveis para {driver.nome_completo} ({week_id}), a usar 0: {exc}")
            self.debug.append(f"Bónus falharam para {driver.nome_completo}: {exc}")
            return BonusBundle.empty()
        return bonuses or BonusBundle.empty()

    def get_debug_log(self):
        return '\n'.join(self.debug)
