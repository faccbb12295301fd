"""
FinancingLedger: empréstimos e descontos semanais ativos de um motorista.

Agregação semanal:
    parcela total  = soma das parcelas de cada financiamento
    juros          = round2(parcela total * soma dos juros % / 100)
    custo total    = round2(parcela total + juros)

Os juros são calculados sobre a parcela AGREGADA com a soma das taxas, e não
financiamento a financiamento. Isto reproduz o comportamento em produção e é
fixado pelos testes; não alterar sem validação do negócio.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.utils import timezone

from settlements.utils import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class FinancingSummary:
    obligation_ids: list = field(default_factory=list)
    financing_type: str = 'DISCOUNT'
    amount: Decimal = ZERO
    installment: Decimal = ZERO
    interest_percent: Decimal = ZERO
    interest_amount: Decimal = ZERO
    total_cost: Decimal = ZERO
    is_parcelado: bool = False

    @property
    def has_financing(self):
        return self.total_cost > 0

    @property
    def display_label(self):
        if not self.obligation_ids:
            return 'Sem financiamento'
        return f"Parcela: €{self.total_cost:.2f}"

    def to_dict(self):
        return {
            'obligation_ids': list(self.obligation_ids),
            'type': self.financing_type,
            'amount': round2(self.amount),
            'installment': round2(self.installment),
            'interest_percent': self.interest_percent,
            'interest_amount': self.interest_amount,
            'total_cost': self.total_cost,
            'has_financing': self.has_financing,
            'is_parcelado': self.is_parcelado,
            'display_label': self.display_label,
        }


def weekly_installment(obligation):
    """
    Parcela semanal de um financiamento (sem juros).

    - empréstimo com semanas restantes <= 0: inerte, 0
    - weekly_amount definido (> 0): usado diretamente
    - empréstimo: valor / semanas (0 se semanas for 0 ou vazio)
    - desconto: o próprio valor é o desconto semanal
    """
    kind = obligation.resolved_type

    if kind == 'LOAN' and obligation.remaining_weeks is not None and obligation.remaining_weeks <= 0:
        return ZERO

    weekly_amount = to_decimal(obligation.weekly_amount)
    if weekly_amount > 0:
        return weekly_amount

    if kind == 'LOAN':
        if not obligation.weeks:
            return ZERO
        return to_decimal(obligation.amount) / Decimal(obligation.weeks)

    return to_decimal(obligation.amount)


def summarize_financing(obligations):
    """Agrega os financiamentos ativos num único resumo semanal (sempre preenchido)"""
    summary = FinancingSummary()
    if not obligations:
        return summary

    total_installment = ZERO
    total_interest_percent = ZERO
    total_amount = ZERO
    has_loan = False
    is_parcelado = False

    for obligation in obligations:
        installment = weekly_installment(obligation)
        if obligation.resolved_type == 'LOAN':
            has_loan = True

        total_installment += installment
        total_interest_percent += to_decimal(obligation.weekly_interest)
        total_amount += to_decimal(obligation.amount)

        if (obligation.weeks or 0) > 0 or (obligation.remaining_weeks or 0) > 0 or installment > 0:
            is_parcelado = True

        logger.debug(
            f"   💳 {obligation.resolved_type} #{obligation.pk}: valor=€{obligation.amount}, "
            f"semanas={obligation.weeks}, restantes={obligation.remaining_weeks}, "
            f"parcela=€{installment:.2f}, juros={obligation.weekly_interest}%"
        )

    interest_amount = round2(total_installment * total_interest_percent / Decimal('100'))

    summary.obligation_ids = [obligation.pk for obligation in obligations]
    summary.financing_type = 'LOAN' if has_loan else 'DISCOUNT'
    summary.amount = total_amount
    summary.installment = total_installment
    summary.interest_percent = total_interest_percent
    summary.interest_amount = interest_amount
    summary.total_cost = round2(total_installment + interest_amount)
    summary.is_parcelado = is_parcelado
    return summary


class FinancingLedger:
    """Leitura dos financiamentos de um motorista"""

    def load_active_obligations(self, driver):
        from settlements.models import FinancingObligation

        obligations = []
        for obligation in FinancingObligation.objects.filter(driver=driver).order_by('created_at', 'pk'):
            if obligation.is_completed:
                logger.debug(f"      ⏭️ Financiamento concluído ignorado: #{obligation.pk} €{obligation.amount}")
                continue
            obligations.append(obligation)
        return obligations

    def weekly_summary(self, driver):
        obligations = self.load_active_obligations(driver)
        summary = summarize_financing(obligations)
        if obligations:
            logger.info(
                f"   💳 Financiamento {driver.nome_completo}: parcela=€{summary.installment:.2f}, "
                f"juros=€{summary.interest_amount:.2f}, total=€{summary.total_cost:.2f}"
            )
        return summary


def reconcile_financing():
    """
    Recalcula semanas restantes dos empréstimos a partir dos acertos que já
    os descontaram. Marca como COMPLETED quando não restam semanas.

    Returns:
        int: número de financiamentos atualizados
    """
    from settlements.models import FinancingObligation, WeeklySettlement

    updated = 0
    loans = FinancingObligation.objects.filter(weeks__gt=0).select_related('driver')

    for obligation in loans:
        if obligation.resolved_type != 'LOAN':
            continue

        processed = 0
        settlements = (WeeklySettlement.objects
                       .filter(driver=obligation.driver)
                       .exclude(payment_status='CANCELLED')
                       .only('financing_details'))
        for settlement in settlements:
            if obligation.pk in (settlement.financing_details or {}).get('obligation_ids', []):
                processed += 1

        remaining = max(0, obligation.weeks - processed)
        target_status = 'COMPLETED' if remaining == 0 else 'ACTIVE'

        changed = []
        if obligation.remaining_weeks != remaining:
            obligation.remaining_weeks = remaining
            changed.append('remaining_weeks')
        if obligation.status != target_status:
            obligation.status = target_status
            changed.append('status')
        if remaining == 0 and not obligation.end_date:
            obligation.end_date = timezone.localdate()
            changed.append('end_date')

        if changed:
            obligation.save(update_fields=changed + ['updated_at'])
            updated += 1
            logger.info(f"✅ Financiamento #{obligation.pk} atualizado: restantes={remaining}, status={target_status}")

    return updated
