from decimal import Decimal

from django.test import TestCase

from settlements.calculators import FinancingLedger, summarize_financing, weekly_installment
from settlements.models import FinancingObligation

from .helpers import create_driver


class WeeklyInstallmentTest(TestCase):
    """Parcela semanal por tipo de financiamento"""

    def obligation(self, **fields):
        values = {'financing_type': 'LOAN', 'amount': Decimal('1000.00')}
        values.update(fields)
        return FinancingObligation(**values)

    def test_loan_divides_by_weeks(self):
        self.assertEqual(weekly_installment(self.obligation(weeks=10)), Decimal('100'))

    def test_loan_without_weeks_is_zero(self):
        self.assertEqual(weekly_installment(self.obligation(weeks=0)), Decimal('0'))
        self.assertEqual(weekly_installment(self.obligation(weeks=None)), Decimal('0'))

    def test_loan_with_no_remaining_weeks_is_inert(self):
        self.assertEqual(weekly_installment(self.obligation(weeks=10, remaining_weeks=0)), Decimal('0'))

    def test_remaining_weeks_is_not_the_divisor(self):
        self.assertEqual(weekly_installment(self.obligation(weeks=10, remaining_weeks=4)), Decimal('100'))

    def test_weekly_amount_overrides_division(self):
        obligation = self.obligation(weeks=10, weekly_amount=Decimal('30.00'))
        self.assertEqual(weekly_installment(obligation), Decimal('30.00'))

    def test_discount_ignores_weeks(self):
        obligation = self.obligation(financing_type='DISCOUNT', amount=Decimal('15.00'), weeks=5)
        self.assertEqual(weekly_installment(obligation), Decimal('15.00'))

    def test_missing_type_is_inferred(self):
        self.assertEqual(self.obligation(financing_type='', weeks=4).resolved_type, 'LOAN')
        self.assertEqual(self.obligation(financing_type='', weeks=None).resolved_type, 'DISCOUNT')


class FinancingSummaryTest(TestCase):

    def setUp(self):
        self.driver = create_driver('Ivo')
        self.ledger = FinancingLedger()

    def test_loan_and_discount_aggregation(self):
        loan = FinancingObligation.objects.create(
            driver=self.driver, financing_type='LOAN', amount=Decimal('1000.00'),
            weeks=10, weekly_interest=Decimal('2.00'),
        )
        discount = FinancingObligation.objects.create(
            driver=self.driver, financing_type='DISCOUNT', amount=Decimal('15.00'),
        )

        summary = self.ledger.weekly_summary(self.driver)

        self.assertEqual(summary.installment, Decimal('115'))
        self.assertEqual(summary.interest_amount, Decimal('2.30'))
        self.assertEqual(summary.total_cost, Decimal('117.30'))
        self.assertTrue(summary.has_financing)
        self.assertTrue(summary.is_parcelado)
        self.assertEqual(summary.financing_type, 'LOAN')
        self.assertEqual(summary.obligation_ids, [loan.pk, discount.pk])

    def test_interest_uses_aggregate_installment_and_summed_rates(self):
        """Juros = (soma das parcelas) x (soma das taxas), não financiamento a financiamento"""
        obligations = [
            FinancingObligation(financing_type='LOAN', amount=Decimal('100.00'), weeks=1, weekly_interest=Decimal('10')),
            FinancingObligation(financing_type='DISCOUNT', amount=Decimal('50.00'), weekly_interest=Decimal('0')),
        ]

        summary = summarize_financing(obligations)

        self.assertEqual(summary.installment, Decimal('150'))
        self.assertEqual(summary.interest_amount, Decimal('15.00'))
        self.assertEqual(summary.total_cost, Decimal('165.00'))

    def test_completed_obligations_are_ignored(self):
        FinancingObligation.objects.create(
            driver=self.driver, financing_type='DISCOUNT', amount=Decimal('40.00'), status='COMPLETED',
        )
        legacy = FinancingObligation.objects.create(
            driver=self.driver, financing_type='DISCOUNT', amount=Decimal('10.00'), status='',
        )

        obligations = self.ledger.load_active_obligations(self.driver)

        self.assertEqual(obligations, [legacy])

    def test_no_financing_is_fully_populated(self):
        summary = self.ledger.weekly_summary(self.driver)
        details = summary.to_dict()

        self.assertFalse(summary.has_financing)
        self.assertEqual(details['total_cost'], Decimal('0.00'))
        self.assertEqual(details['obligation_ids'], [])
        self.assertEqual(details['type'], 'DISCOUNT')
        self.assertEqual(details['display_label'], 'Sem financiamento')

    def test_inert_loan_contributes_nothing(self):
        FinancingObligation.objects.create(
            driver=self.driver, financing_type='LOAN', amount=Decimal('600.00'),
            weeks=6, remaining_weeks=0, weekly_interest=Decimal('5'),
        )

        summary = self.ledger.weekly_summary(self.driver)

        self.assertEqual(summary.total_cost, Decimal('0.00'))
        self.assertFalse(summary.has_financing)
