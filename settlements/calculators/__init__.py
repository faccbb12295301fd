"""
Calculators financeiros dos acertos semanais.
"""
from .admin_fee import AdminFeeContext, compute_admin_fee, evaluate_admin_fee
from .bonus_aggregator import BonusAggregator, BonusBundle, DefaultBonusAggregator
from .financing_calculator import FinancingLedger, FinancingSummary, summarize_financing, weekly_installment
from .settlement_calculator import SettlementResult, WeeklySettlementCalculator

__all__ = [
    'AdminFeeContext',
    'compute_admin_fee',
    'evaluate_admin_fee',
    'BonusAggregator',
    'BonusBundle',
    'DefaultBonusAggregator',
    'FinancingLedger',
    'FinancingSummary',
    'summarize_financing',
    'weekly_installment',
    'SettlementResult',
    'WeeklySettlementCalculator',
]
