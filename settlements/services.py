"""
SettlementGate: único ponto que decide se um acerto semanal é calculado,
reutilizado ou recalculado.

Regras:
- existe e sem force_refresh -> devolve o existente, sem calcular
- não existe -> calcula e grava como PENDING
- existe, PENDING e force_refresh -> recalcula apenas os campos financeiros
- existe e PAID -> nunca é alterado (aviso no log)

Assume um único processo a escrever por semana; duas execuções concorrentes
da mesma semana falham com IntegrityError no record_id para o segundo escritor.
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from .exceptions import SettlementLocked
from .models import WeeklyPlatformEntry, WeeklySettlement
from .utils import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

OUTCOME_CREATED = 'created'
OUTCOME_EXISTING = 'existing'
OUTCOME_REFRESHED = 'refreshed'
OUTCOME_LOCKED = 'locked'

DATA_SOURCE_PAYMENT = 'payment'
DATA_SOURCE_LIVE = 'live'
DATA_SOURCE_MERGED = 'merged'

RECORD_FIELDS = [
    'driver_name', 'driver_type', 'week_id', 'week_start', 'week_end',
    'uber_total', 'bolt_total', 'ganhos_total', 'iva_valor', 'ganhos_menos_iva',
    'despesas_adm', 'combustivel', 'portagens', 'viaverde', 'aluguel',
    'financing_details', 'total_despesas',
    'bonus_meta_amount', 'bonus_referral_amount', 'commission_amount', 'total_bonus_amount',
    'bonus_pending', 'repasse', 'platform_data', 'iban', 'calculated_at',
]


def settlement_to_record(settlement):
    """Registo de leitura a partir de um acerto gravado"""
    record = {field: getattr(settlement, field) for field in RECORD_FIELDS}
    record.update({
        'record_id': settlement.record_id,
        'driver_id': settlement.driver_id,
        'payment_status': settlement.payment_status,
        'paid_at': settlement.paid_at,
        'paid_by': settlement.paid_by,
        'payment_reference': settlement.payment_reference,
        'proof_url': settlement.proof_url,
        'data_source': DATA_SOURCE_PAYMENT,
    })

    if 'total_cost' not in (settlement.financing_details or {}):
        record['financing_details'] = _financing_from_identity(settlement)
    return record


def _financing_from_identity(settlement):
    """
    Acertos antigos sem detalhe de financiamento: o valor descontado é o que
    falta para fechar repasse = ganhos - IVA - taxa - despesas + bónus.
    """
    implied = round2(
        to_decimal(settlement.ganhos_menos_iva)
        - to_decimal(settlement.despesas_adm)
        - to_decimal(settlement.combustivel)
        - to_decimal(settlement.portagens)
        - to_decimal(settlement.aluguel)
        + to_decimal(settlement.total_bonus_amount)
        - to_decimal(settlement.repasse)
    )
    total_cost = implied if implied > 0 else ZERO
    return {
        'obligation_ids': [],
        'type': 'DISCOUNT',
        'amount': total_cost,
        'installment': total_cost,
        'interest_percent': ZERO,
        'interest_amount': ZERO,
        'total_cost': total_cost,
        'has_financing': total_cost > 0,
        'is_parcelado': False,
        'display_label': f"Parcela: €{total_cost:.2f}" if total_cost > 0 else 'Sem financiamento',
        'derived': True,
    }


class SettlementGate:

    def get_stored_settlement(self, driver_id, week_id):
        record_id = WeeklySettlement.build_record_id(driver_id, week_id)
        return WeeklySettlement.objects.filter(record_id=record_id).first()

    def get_or_create(self, driver, week_id, compute_fn, force_refresh=False):
        """
        Returns:
            tuple (WeeklySettlement, outcome)
        """
        existing = self.get_stored_settlement(driver.pk, week_id)

        if existing is not None and not force_refresh:
            logger.debug(f"⏭️ Acerto {existing.record_id} já existe, reutilizado")
            return existing, OUTCOME_EXISTING

        if existing is not None and existing.is_paid:
            logger.warning(f"🔒 Acerto {existing.record_id} já está PAGO, recálculo recusado")
            return existing, OUTCOME_LOCKED

        data = compute_fn()

        with transaction.atomic():
            if existing is not None:
                self._overwrite_financials(existing, data)
                logger.info(f"🔄 Acerto {existing.record_id} recalculado: repasse=€{existing.repasse}")
                return existing, OUTCOME_REFRESHED

            settlement = WeeklySettlement.objects.create(
                record_id=WeeklySettlement.build_record_id(driver.pk, week_id),
                driver=driver,
                payment_status='PENDING',
                **data
            )
        logger.info(f"✅ Acerto {settlement.record_id} criado: repasse=€{settlement.repasse}")
        return settlement, OUTCOME_CREATED

    def _overwrite_financials(self, settlement, data):
        if settlement.is_paid:
            raise SettlementLocked(f"Acerto {settlement.record_id} já está pago")

        fields = [field for field in data if field not in WeeklySettlement.PAYMENT_FIELDS]
        for field in fields:
            setattr(settlement, field, data[field])
        settlement.save(update_fields=fields + ['updated_at'])

    def weekly_records(self, week_id, driver_id=None, merge_live=False, calculator=None):
        """
        Registos de leitura da semana, sem gravar nada:
        - acertos gravados ('payment'), ou atualizados com os registos atuais ('merged')
        - motoristas ativos com registos mas sem acerto, calculados em memória ('live')
        """
        from .calculators import WeeklySettlementCalculator

        calculator = calculator or WeeklySettlementCalculator(gate=self)

        stored = WeeklySettlement.objects.filter(week_id=week_id).select_related('driver')
        if driver_id is not None:
            stored = stored.filter(driver_id=driver_id)
        stored_by_driver = {settlement.driver_id: settlement for settlement in stored}

        grouped = calculator.group_week_entries(week_id, driver_id=driver_id)
        # Carregados uma vez, só se algum motorista for calculado em memória
        collaborators = None
        records = []

        for driver, entries in grouped.values():
            settlement = stored_by_driver.pop(driver.pk, None)
            if settlement is not None:
                if merge_live:
                    records.append(self.derive_for_display(settlement, entries))
                else:
                    records.append(settlement_to_record(settlement))
                continue

            if not driver.is_active:
                continue

            try:
                if collaborators is None:
                    collaborators = calculator.resolve_collaborators()
                finance_settings, bonus_aggregator = collaborators
                data = calculator.compute_settlement(
                    driver, week_id, entries,
                    finance_settings=finance_settings, bonus_aggregator=bonus_aggregator,
                )
            except Exception:
                logger.exception(f"❌ Erro ao calcular {driver.nome_completo} ({driver.pk}) em {week_id}")
                continue

            record = {field: data[field] for field in RECORD_FIELDS}
            record.update({
                'record_id': WeeklySettlement.build_record_id(driver.pk, week_id),
                'driver_id': driver.pk,
                'payment_status': None,
                'paid_at': None,
                'paid_by': '',
                'payment_reference': '',
                'proof_url': '',
                'data_source': DATA_SOURCE_LIVE,
            })
            records.append(record)

        # Acertos gravados cujos registos semanais já não existem
        for settlement in stored_by_driver.values():
            records.append(settlement_to_record(settlement))

        records.sort(key=lambda record: (record['driver_name'] or '').lower())
        return records

    def derive_for_display(self, settlement, entries):
        """
        Ganhos, combustível e portagens dos registos atuais; aluguel,
        financiamento, taxa adm e bónus do acerto gravado.
        """
        from .calculators import WeeklySettlementCalculator

        record = settlement_to_record(settlement)
        totals = WeeklySettlementCalculator.platform_totals(entries)

        def total_for(platform):
            return round2(totals.get(platform, {}).get('total', ZERO))

        snapshot_config = (settlement.record_snapshot or {}).get('config', {})
        vat_percent = to_decimal(snapshot_config.get('vat_percent', settings.SETTLEMENTS.get('VAT_PERCENT', '6')))

        uber_total = total_for('UBER')
        bolt_total = total_for('BOLT')
        combustivel = total_for('FUEL_CARD')
        viaverde = total_for('TOLL_CARD')

        ganhos_total = uber_total + bolt_total
        iva_valor = round2(ganhos_total * vat_percent / Decimal('100'))
        ganhos_menos_iva = ganhos_total - iva_valor
        portagens = viaverde if settlement.driver_type == 'RENTER' else ZERO

        aluguel = to_decimal(settlement.aluguel)
        financing_cost = to_decimal(record['financing_details'].get('total_cost'))
        despesas_adm = to_decimal(settlement.despesas_adm)
        total_bonus = to_decimal(settlement.bonus_meta_amount) + to_decimal(settlement.bonus_referral_amount) \
            + to_decimal(settlement.commission_amount)

        total_despesas = round2(combustivel + portagens + aluguel + financing_cost)
        repasse = round2(ganhos_menos_iva - despesas_adm - total_despesas + total_bonus)

        record.update({
            'uber_total': uber_total,
            'bolt_total': bolt_total,
            'ganhos_total': ganhos_total,
            'iva_valor': iva_valor,
            'ganhos_menos_iva': ganhos_menos_iva,
            'combustivel': combustivel,
            'portagens': portagens,
            'viaverde': viaverde,
            'total_despesas': total_despesas,
            'repasse': repasse,
            'platform_data': WeeklySettlementCalculator.platform_data(totals),
            'data_source': DATA_SOURCE_MERGED,
        })
        return record


def available_week_ids(limit=10):
    """Semanas com registos importados, da mais recente para a mais antiga"""
    weeks = (WeeklyPlatformEntry.objects
             .order_by('-week_id')
             .values_list('week_id', flat=True)
             .distinct())
    return list(weeks[:limit])
