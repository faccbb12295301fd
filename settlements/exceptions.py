class SettlementError(Exception):
    """Erro base dos acertos semanais"""


class InvalidWeekId(SettlementError, ValueError):
    """Identificador de semana fora do formato ISO (2024-W10)"""


class SettlementLocked(SettlementError):
    """Tentativa de alterar um acerto já pago"""


class PaymentStateError(SettlementError, ValueError):
    """Transição de status de pagamento inválida"""
