from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from settlements.calculators import BonusBundle, FinancingLedger, WeeklySettlementCalculator
from settlements.exceptions import InvalidWeekId
from settlements.models import FinancingObligation, WeeklySettlement

from .helpers import WEEK_ID, add_ana_week, add_entry, create_driver, finance_settings


class NoBonusAggregator:
    def get_bonuses(self, driver_id, driver_name, week_id, week_start, gross_earnings, trip_count):
        return BonusBundle.empty()


class FailingLedger(FinancingLedger):
    """Falha apenas para um motorista"""

    def __init__(self, broken_driver_id):
        self.broken_driver_id = broken_driver_id

    def weekly_summary(self, driver):
        if driver.pk == self.broken_driver_id:
            raise ValueError('Financiamento inválido')
        return super().weekly_summary(driver)


def build_calculator(**kwargs):
    kwargs.setdefault('finance_settings', finance_settings())
    kwargs.setdefault('bonus_aggregator', NoBonusAggregator())
    return WeeklySettlementCalculator(**kwargs)


class EndToEndScenarioTest(TestCase):
    """Locatária Ana, semana 2024-W10, sem financiamento nem bónus"""

    def setUp(self):
        self.ana = create_driver('Ana', driver_type='RENTER', rental_fee=Decimal('50.00'), iban='PT50000000000000000000001')
        add_ana_week(self.ana)

    def test_repasse_ana(self):
        calculator = build_calculator()
        results = calculator.process_week(WEEK_ID)

        self.assertEqual(len(results), 1)
        self.assertTrue(results[0].success)
        self.assertEqual(results[0].outcome, 'created')

        settlement = WeeklySettlement.objects.get(record_id=f"{self.ana.pk}_{WEEK_ID}")
        self.assertEqual(settlement.uber_total, Decimal('400.00'))
        self.assertEqual(settlement.bolt_total, Decimal('200.00'))
        self.assertEqual(settlement.ganhos_total, Decimal('600.00'))
        self.assertEqual(settlement.iva_valor, Decimal('36.00'))
        self.assertEqual(settlement.ganhos_menos_iva, Decimal('564.00'))
        self.assertEqual(settlement.despesas_adm, Decimal('39.48'))
        self.assertEqual(settlement.combustivel, Decimal('60.00'))
        self.assertEqual(settlement.portagens, Decimal('20.00'))
        self.assertEqual(settlement.aluguel, Decimal('50.00'))
        self.assertEqual(settlement.total_despesas, Decimal('130.00'))
        self.assertEqual(settlement.repasse, Decimal('394.52'))
        self.assertEqual(settlement.payment_status, 'PENDING')
        self.assertEqual(settlement.iban, 'PT50000000000000000000001')

    def test_snapshot_and_platform_data(self):
        build_calculator().process_week(WEEK_ID)
        settlement = WeeklySettlement.objects.get(driver=self.ana)

        snapshot = settlement.record_snapshot
        self.assertEqual(len(snapshot['entries']), 4)
        self.assertEqual(snapshot['config']['vat_percent'], '6')
        self.assertEqual(snapshot['totals']['repasse'], '394.52')
        self.assertEqual(snapshot['admin_fee']['mode'], 'PERCENT')
        self.assertEqual(snapshot['trip_count'], 60)

        platforms = {item['platform']: item for item in settlement.platform_data}
        self.assertEqual(platforms['UBER']['count'], 1)
        self.assertEqual(platforms['UBER']['trips'], 40)
        self.assertEqual(Decimal(platforms['TOLL_CARD']['total']), Decimal('20.00'))

        self.assertFalse(settlement.financing_details['has_financing'])
        self.assertEqual(settlement.financing_details['display_label'], 'Sem financiamento')

    def test_entries_for_same_platform_are_summed(self):
        add_entry('UBER', '50.00', self.ana)
        build_calculator().process_week(WEEK_ID)

        settlement = WeeklySettlement.objects.get(driver=self.ana)
        self.assertEqual(settlement.uber_total, Decimal('450.00'))


class IdempotenceTest(TestCase):

    def setUp(self):
        self.driver = create_driver('Bruno')
        add_entry('UBER', '300.00', self.driver)

    def test_second_run_does_not_recompute(self):
        calculator = build_calculator()

        with mock.patch.object(calculator, 'compute_settlement', wraps=calculator.compute_settlement) as spy:
            first = calculator.process_week(WEEK_ID)
            self.assertEqual(spy.call_count, 1)

            second = calculator.process_week(WEEK_ID)
            self.assertEqual(spy.call_count, 1)

        self.assertEqual(first[0].outcome, 'created')
        self.assertEqual(second[0].outcome, 'existing')
        self.assertEqual(first[0].repasse, second[0].repasse)
        self.assertEqual(WeeklySettlement.objects.count(), 1)

    def test_existing_record_ignores_new_entries_without_refresh(self):
        calculator = build_calculator()
        calculator.process_week(WEEK_ID)
        add_entry('BOLT', '100.00', self.driver)

        calculator.process_week(WEEK_ID)

        settlement = WeeklySettlement.objects.get(driver=self.driver)
        self.assertEqual(settlement.bolt_total, Decimal('0.00'))

    def test_force_refresh_recomputes_pending(self):
        calculator = build_calculator()
        calculator.process_week(WEEK_ID)
        add_entry('BOLT', '100.00', self.driver)

        results = calculator.process_week(WEEK_ID, force_refresh=True)

        self.assertEqual(results[0].outcome, 'refreshed')
        settlement = WeeklySettlement.objects.get(driver=self.driver)
        self.assertEqual(settlement.bolt_total, Decimal('100.00'))
        self.assertEqual(settlement.ganhos_total, Decimal('400.00'))
        self.assertEqual(settlement.payment_status, 'PENDING')


class PaidRecordProtectionTest(TestCase):

    def setUp(self):
        self.driver = create_driver('Carla')
        add_entry('UBER', '500.00', self.driver)

    def test_paid_settlement_is_never_recomputed(self):
        calculator = build_calculator()
        calculator.process_week(WEEK_ID)

        settlement = WeeklySettlement.objects.get(driver=self.driver)
        settlement.mark_as_paid(paid_by='financeiro', payment_reference='MB WAY')
        paid_at = settlement.paid_at
        repasse = settlement.repasse

        add_entry('UBER', '250.00', self.driver)

        with mock.patch.object(calculator, 'compute_settlement', wraps=calculator.compute_settlement) as spy:
            results = calculator.process_week(WEEK_ID, force_refresh=True)
            spy.assert_not_called()

        self.assertEqual(results[0].outcome, 'locked')
        settlement.refresh_from_db()
        self.assertEqual(settlement.repasse, repasse)
        self.assertEqual(settlement.uber_total, Decimal('500.00'))
        self.assertEqual(settlement.payment_status, 'PAID')
        self.assertEqual(settlement.paid_by, 'financeiro')
        self.assertEqual(settlement.payment_reference, 'MB WAY')
        self.assertEqual(settlement.paid_at, paid_at)


class TollAsymmetryTest(TestCase):
    """Portagens só são descontadas a locatários"""

    def test_renter_pays_tolls_affiliate_does_not(self):
        affiliate = create_driver('Afiliado', driver_type='AFFILIATE')
        renter = create_driver('Locatario', driver_type='RENTER', rental_fee=Decimal('0'))
        for driver in (affiliate, renter):
            add_entry('UBER', '300.00', driver)
            add_entry('TOLL_CARD', '20.00', driver)

        build_calculator().process_week(WEEK_ID)

        affiliate_settlement = WeeklySettlement.objects.get(driver=affiliate)
        renter_settlement = WeeklySettlement.objects.get(driver=renter)

        self.assertEqual(affiliate_settlement.portagens, Decimal('0.00'))
        self.assertEqual(affiliate_settlement.viaverde, Decimal('20.00'))
        self.assertEqual(renter_settlement.portagens, Decimal('20.00'))
        self.assertEqual(affiliate_settlement.repasse - renter_settlement.repasse, Decimal('20.00'))

    def test_affiliate_pays_no_rent(self):
        affiliate = create_driver('Afiliado', driver_type='AFFILIATE', rental_fee=Decimal('80.00'))
        add_entry('UBER', '300.00', affiliate)

        build_calculator().process_week(WEEK_ID)

        self.assertEqual(WeeklySettlement.objects.get(driver=affiliate).aluguel, Decimal('0.00'))


class ResolutionTest(TestCase):

    def test_direct_id_wins_over_platform_key(self):
        direct = create_driver('Direto')
        other = create_driver('Outro', integrations={'uber': 'uuid-outro'})
        add_entry('UBER', '100.00', direct, reference_id='UUID-OUTRO')

        calculator = build_calculator()
        calculator.process_week(WEEK_ID)

        self.assertTrue(WeeklySettlement.objects.filter(driver=direct).exists())
        self.assertFalse(WeeklySettlement.objects.filter(driver=other).exists())
        self.assertEqual(calculator.stats['direct'], 1)

    def test_fallbacks_and_skipped_entries(self):
        driver = create_driver('Dora', integrations={'bolt': {'key': 'dora@mail.pt', 'enabled': True}}, vehicle_plate='AA-00-BB')
        add_entry('BOLT', '150.00', reference_id='Dora@Mail.pt')
        add_entry('TOLL_CARD', '12.00', vehicle_plate='aa 00 bb')
        add_entry('UBER', '99.00', reference_id='desconhecido')

        calculator = build_calculator()
        results = calculator.process_week(WEEK_ID)

        self.assertEqual(len(results), 1)
        self.assertEqual(calculator.stats['fallback'], 2)
        self.assertEqual(calculator.stats['skipped'], 1)
        settlement = WeeklySettlement.objects.get(driver=driver)
        self.assertEqual(settlement.bolt_total, Decimal('150.00'))
        self.assertEqual(settlement.viaverde, Decimal('12.00'))

    def test_inactive_driver_is_skipped(self):
        inactive = create_driver('Inativo', status='INACTIVE')
        add_entry('UBER', '100.00', inactive)

        calculator = build_calculator()
        results = calculator.process_week(WEEK_ID)

        self.assertEqual(results, [])
        self.assertEqual(calculator.stats['inactive'], 1)
        self.assertFalse(WeeklySettlement.objects.exists())

    def test_driver_filter(self):
        first = create_driver('Primeiro')
        second = create_driver('Segundo')
        add_entry('UBER', '100.00', first)
        add_entry('UBER', '200.00', second)

        results = build_calculator().process_week(WEEK_ID, driver_id=second.pk)

        self.assertEqual([result.driver_id for result in results], [second.pk])


class FailureIsolationTest(TestCase):

    def test_one_driver_failure_does_not_abort_week(self):
        broken = create_driver('Avariado')
        healthy = create_driver('Saudavel')
        add_entry('UBER', '100.00', broken)
        add_entry('UBER', '200.00', healthy)

        calculator = build_calculator(ledger=FailingLedger(broken.pk))
        results = calculator.process_week(WEEK_ID)

        by_driver = {result.driver_id: result for result in results}
        self.assertFalse(by_driver[broken.pk].success)
        self.assertIn('Financiamento inválido', by_driver[broken.pk].error)
        self.assertTrue(by_driver[healthy.pk].success)
        self.assertEqual(calculator.stats['failed'], 1)
        self.assertTrue(WeeklySettlement.objects.filter(driver=healthy).exists())
        self.assertFalse(WeeklySettlement.objects.filter(driver=broken).exists())

    def test_bonus_failure_degrades_to_zero(self):
        driver = create_driver('Eva')
        add_entry('UBER', '100.00', driver)
        aggregator = mock.Mock()
        aggregator.get_bonuses.side_effect = RuntimeError('serviço indisponível')

        results = build_calculator(bonus_aggregator=aggregator).process_week(WEEK_ID)

        self.assertTrue(results[0].success)
        settlement = WeeklySettlement.objects.get(driver=driver)
        self.assertEqual(settlement.total_bonus_amount, Decimal('0.00'))
        # 100 - 6 IVA - 6.58 taxa
        self.assertEqual(settlement.repasse, Decimal('87.42'))

    def test_bonuses_are_added_to_repasse(self):
        driver = create_driver('Filipa')
        add_entry('UBER', '100.00', driver)
        aggregator = mock.Mock()
        aggregator.get_bonuses.return_value = BonusBundle(
            bonus_meta_amount=Decimal('20.00'),
            bonus_referral_amount=Decimal('25.00'),
            commission_amount=Decimal('5.00'),
        )

        build_calculator(bonus_aggregator=aggregator).process_week(WEEK_ID)

        settlement = WeeklySettlement.objects.get(driver=driver)
        self.assertEqual(settlement.total_bonus_amount, Decimal('50.00'))
        self.assertEqual(settlement.repasse, Decimal('137.42'))
        aggregator.get_bonuses.assert_called_once()

    def test_save_failure_isolated_to_one_driver(self):
        broken = create_driver('Gravacao')
        healthy = create_driver('Intacto')
        add_entry('UBER', '100.00', broken)
        add_entry('UBER', '200.00', healthy)
        original_create = WeeklySettlement.objects.create

        def create(**kwargs):
            if kwargs['driver'] == broken:
                raise DatabaseError('escrita recusada')
            return original_create(**kwargs)

        with mock.patch.object(WeeklySettlement.objects, 'create', side_effect=create):
            results = build_calculator().process_week(WEEK_ID)

        by_driver = {result.driver_id: result for result in results}
        self.assertFalse(by_driver[broken.pk].success)
        self.assertIn('escrita recusada', by_driver[broken.pk].error)
        self.assertTrue(by_driver[healthy.pk].success)
        self.assertFalse(WeeklySettlement.objects.filter(driver=broken).exists())
        self.assertEqual(WeeklySettlement.objects.get(driver=healthy).ganhos_total, Decimal('200.00'))

    def test_cache_outage_does_not_abort_week(self):
        driver = create_driver('Ines')
        add_entry('UBER', '100.00', driver)

        with mock.patch('system_config.services.finance_config.cache') as broken_cache:
            broken_cache.get.side_effect = ConnectionError('redis down')
            results = WeeklySettlementCalculator().process_week(WEEK_ID)

        self.assertEqual(len(results), 1)
        self.assertTrue(results[0].success)
        self.assertEqual(WeeklySettlement.objects.get(driver=driver).repasse, Decimal('87.42'))


class FinancingInSettlementTest(TestCase):

    def test_financing_is_deducted(self):
        driver = create_driver('Gil')
        add_entry('UBER', '1000.00', driver)
        FinancingObligation.objects.create(
            driver=driver, financing_type='LOAN', amount=Decimal('1000'), weeks=10,
            remaining_weeks=10, weekly_interest=Decimal('2'),
        )
        FinancingObligation.objects.create(driver=driver, financing_type='DISCOUNT', amount=Decimal('15'))

        build_calculator().process_week(WEEK_ID)

        settlement = WeeklySettlement.objects.get(driver=driver)
        self.assertEqual(Decimal(settlement.financing_details['total_cost']), Decimal('117.30'))
        self.assertEqual(settlement.total_despesas, Decimal('117.30'))
        # 1000 - 60 IVA - 65.80 taxa - 117.30
        self.assertEqual(settlement.repasse, Decimal('756.90'))
        self.assertEqual(settlement.financing_details['display_label'], 'Parcela: €117.30')


class WeekInputTest(TestCase):

    def test_empty_week_returns_empty_list(self):
        self.assertEqual(build_calculator().process_week('2024-W11'), [])

    def test_invalid_week_id(self):
        with self.assertRaises(InvalidWeekId):
            build_calculator().process_week('2024-10')

    def test_debug_log(self):
        driver = create_driver('Hugo')
        add_entry('UBER', '100.00', driver)
        calculator = build_calculator()
        calculator.process_week(WEEK_ID)

        self.assertIn('Hugo', calculator.get_debug_log())

    def test_debug_log_is_reset_between_runs(self):
        driver = create_driver('Jorge')
        add_entry('UBER', '100.00', driver)
        calculator = build_calculator()
        calculator.process_week(WEEK_ID)
        calculator.process_week(WEEK_ID)

        debug_log = calculator.get_debug_log()
        self.assertEqual(debug_log.count('Mapeamento'), 1)
        self.assertEqual(debug_log.count('Jorge: existing'), 1)
