from decimal import Decimal

from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from .exceptions import PaymentStateError


class WeeklyPlatformEntry(models.Model):
    """
    Registo normalizado de uma plataforma para um motorista numa semana
    (dataWeekly). Criado pela importação semanal; só de leitura para os acertos.
    """

    PLATFORM_CHOICES = [
        ('UBER', 'Uber'),
        ('BOLT', 'Bolt'),
        ('FUEL_CARD', 'Cartão Combustível'),
        ('TOLL_CARD', 'Portagens (Via Verde)'),
    ]

    # Identificação (o motorista pode ainda não estar resolvido)
    source_driver_id = models.CharField(
        'ID do Motorista',
        max_length=64,
        blank=True,
        db_index=True,
        help_text='ID direto do motorista, quando conhecido na importação'
    )
    reference_id = models.CharField(
        'Referência Externa',
        max_length=200,
        blank=True,
        help_text='UUID Uber, email Bolt, número do cartão'
    )
    vehicle_plate = models.CharField('Matrícula', max_length=20, blank=True)
    driver_name = models.CharField('Nome na Plataforma', max_length=200, blank=True)

    platform = models.CharField('Plataforma', max_length=20, choices=PLATFORM_CHOICES, db_index=True)

    # Período
    week_id = models.CharField('Semana', max_length=10, db_index=True, help_text='Formato ISO: 2024-W10')
    week_start = models.DateField('Início da Semana')
    week_end = models.DateField('Fim da Semana')

    total_value = models.DecimalField(
        'Valor Total',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0)]
    )
    trips = models.PositiveIntegerField('Viagens', default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Registo Semanal de Plataforma'
        verbose_name_plural = 'Registos Semanais de Plataformas'
        ordering = ['week_id', 'platform', 'id']
        indexes = [
            models.Index(fields=['week_id', 'platform']),
        ]

    def __str__(self):
        who = self.source_driver_id or self.reference_id or self.vehicle_plate or '?'
        return f"{self.week_id} {self.get_platform_display()} {who}: €{self.total_value}"


class FinancingObligation(models.Model):
    """
    Empréstimo (parcelado em semanas) ou desconto semanal fixo de um motorista.
    """

    TYPE_CHOICES = [
        ('LOAN', 'Empréstimo'),
        ('DISCOUNT', 'Desconto semanal'),
    ]

    STATUS_CHOICES = [
        ('ACTIVE', 'Ativo'),
        ('COMPLETED', 'Concluído'),
    ]

    driver = models.ForeignKey(
        'drivers_app.DriverProfile',
        on_delete=models.PROTECT,
        related_name='financings',
        verbose_name='Motorista'
    )

    financing_type = models.CharField(
        'Tipo',
        max_length=10,
        choices=TYPE_CHOICES,
        blank=True,
        help_text='Vazio em registos antigos: inferido pelo número de semanas'
    )

    amount = models.DecimalField(
        'Valor',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0)],
        help_text='Total do empréstimo, ou valor semanal do desconto'
    )
    weeks = models.PositiveIntegerField('Semanas', null=True, blank=True)
    remaining_weeks = models.IntegerField('Semanas Restantes', null=True, blank=True)
    weekly_amount = models.DecimalField(
        'Parcela Semanal',
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text='Se definida, substitui valor / semanas'
    )
    weekly_interest = models.DecimalField(
        'Juros Semanais (%)',
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0)]
    )

    status = models.CharField(
        'Status',
        max_length=10,
        choices=STATUS_CHOICES,
        default='ACTIVE',
        blank=True,
        db_index=True
    )

    start_date = models.DateField('Início', null=True, blank=True)
    end_date = models.DateField('Fim', null=True, blank=True)
    notes = models.TextField('Notas', blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Financiamento'
        verbose_name_plural = 'Financiamentos'
        ordering = ['driver', 'created_at']

    def __str__(self):
        return f"{self.get_financing_type_display() or 'Financiamento'} - {self.driver.nome_completo} - €{self.amount}"

    @property
    def resolved_type(self):
        if self.financing_type:
            return self.financing_type
        return 'LOAN' if (self.weeks or 0) > 0 else 'DISCOUNT'

    @property
    def is_completed(self):
        return (self.status or 'ACTIVE').upper() == 'COMPLETED'


class DriverGoal(models.Model):
    """Meta semanal (ganhos ou viagens) com bónus associado"""

    CRITERION_CHOICES = [
        ('EARNINGS', 'Ganhos (€)'),
        ('TRIPS', 'Viagens'),
    ]

    BONUS_TYPE_CHOICES = [
        ('FIXED', 'Valor fixo'),
        ('PERCENT', 'Percentual dos ganhos'),
    ]

    STATUS_CHOICES = [
        ('ACTIVE', 'Ativa'),
        ('INACTIVE', 'Inativa'),
    ]

    driver = models.ForeignKey(
        'drivers_app.DriverProfile',
        on_delete=models.CASCADE,
        related_name='goals',
        verbose_name='Motorista'
    )
    criterion = models.CharField('Critério', max_length=10, choices=CRITERION_CHOICES, default='EARNINGS')
    weekly_target = models.DecimalField(
        'Meta Semanal',
        max_digits=10,
        decimal_places=2,
        help_text='Ganhos em € ou número de viagens, conforme o critério'
    )
    bonus_type = models.CharField('Tipo de Bónus', max_length=10, choices=BONUS_TYPE_CHOICES, default='FIXED')
    bonus_amount = models.DecimalField(
        'Bónus',
        max_digits=10,
        decimal_places=2,
        help_text='Valor em € ou percentagem, conforme o tipo'
    )
    description = models.CharField('Descrição', max_length=200, blank=True)
    status = models.CharField('Status', max_length=10, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)
    starts_on = models.DateField('Válida desde', null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Meta de Motorista'
        verbose_name_plural = 'Metas de Motoristas'
        ordering = ['driver', '-created_at']

    def __str__(self):
        if self.criterion == 'TRIPS':
            return f"{self.driver.nome_completo}: meta {self.weekly_target} viagens"
        return f"{self.driver.nome_completo}: meta €{self.weekly_target}"


class WeeklySettlement(models.Model):
    """
    Acerto semanal (driverPayment) de um motorista: um por (motorista, semana),
    identificado por record_id = "<driverId>_<weekId>".

    Os campos financeiros são gravados uma única vez pelo SettlementGate;
    depois disso apenas os campos de pagamento mudam.
    """

    PAYMENT_STATUS_CHOICES = [
        ('PENDING', 'Pendente'),
        ('PAID', 'Pago'),
        ('CANCELLED', 'Cancelado'),
    ]

    # Campos escritos apenas pela marcação de pagamento
    PAYMENT_FIELDS = [
        'payment_status', 'paid_at', 'paid_by', 'payment_reference',
        'proof_url', 'proof_file_name',
    ]

    record_id = models.CharField('Chave', max_length=100, unique=True)

    # Identidade
    driver = models.ForeignKey(
        'drivers_app.DriverProfile',
        on_delete=models.PROTECT,
        related_name='weekly_settlements',
        verbose_name='Motorista'
    )
    driver_name = models.CharField('Motorista', max_length=200)
    driver_type = models.CharField('Tipo de Motorista', max_length=10)
    week_id = models.CharField('Semana', max_length=10, db_index=True)
    week_start = models.DateField('Início da Semana')
    week_end = models.DateField('Fim da Semana')

    # Ganhos
    uber_total = models.DecimalField('Uber', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    bolt_total = models.DecimalField('Bolt', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    ganhos_total = models.DecimalField('Ganhos', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    iva_valor = models.DecimalField('IVA', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    ganhos_menos_iva = models.DecimalField('Ganhos - IVA', max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Descontos
    despesas_adm = models.DecimalField('Taxa Adm', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    combustivel = models.DecimalField('Combustível', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    portagens = models.DecimalField(
        'Portagens',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Descontadas apenas a locatários'
    )
    viaverde = models.DecimalField(
        'Via Verde (bruto)',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    aluguel = models.DecimalField('Aluguel', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    financing_details = models.JSONField('Financiamento', default=dict, encoder=DjangoJSONEncoder)
    total_despesas = models.DecimalField(
        'Total Despesas',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Combustível + portagens + aluguel + financiamento (sem Taxa Adm)'
    )

    # Bónus
    bonus_meta_amount = models.DecimalField('Bónus Meta', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    bonus_referral_amount = models.DecimalField('Bónus Indicação', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    commission_amount = models.DecimalField('Comissão', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_bonus_amount = models.DecimalField('Total Bónus', max_digits=12, decimal_places=2, default=Decimal('0.00'))
    bonus_pending = models.JSONField('Bónus Pendentes', default=list, blank=True, encoder=DjangoJSONEncoder)

    repasse = models.DecimalField(
        'Repasse',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Valor líquido final a pagar ao motorista'
    )

    platform_data = models.JSONField('Dados por Plataforma', default=list, blank=True, encoder=DjangoJSONEncoder)
    record_snapshot = models.JSONField('Snapshot', default=dict, encoder=DjangoJSONEncoder)
    iban = models.CharField('IBAN', max_length=34, blank=True)

    # Pagamento
    payment_status = models.CharField(
        'Status do Pagamento',
        max_length=10,
        choices=PAYMENT_STATUS_CHOICES,
        default='PENDING',
        db_index=True
    )
    paid_at = models.DateTimeField('Pago em', null=True, blank=True)
    paid_by = models.CharField('Pago por', max_length=100, blank=True)
    payment_reference = models.CharField(
        'Referência de Pagamento',
        max_length=200,
        blank=True,
        help_text='MB WAY, Transferência, etc.'
    )
    proof_url = models.URLField('Comprovativo', max_length=500, blank=True)
    proof_file_name = models.CharField('Nome do Comprovativo', max_length=200, blank=True)

    # Auditoria
    calculated_at = models.DateTimeField('Calculado em', default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Acerto Semanal'
        verbose_name_plural = 'Acertos Semanais'
        ordering = ['-week_id', 'driver_name']
        indexes = [
            models.Index(fields=['week_id', 'driver']),
            models.Index(fields=['payment_status', 'week_id']),
        ]

    def __str__(self):
        return f"{self.driver_name} - {self.week_id} - €{self.repasse} ({self.get_payment_status_display()})"

    @staticmethod
    def build_record_id(driver_id, week_id):
        return f"{driver_id}_{week_id}"

    @property
    def is_paid(self):
        return self.payment_status == 'PAID'

    def mark_as_paid(self, paid_by='', payment_reference='', proof_url='', proof_file_name=''):
        """Marca como pago sem tocar nos valores calculados"""
        if self.payment_status != 'PENDING':
            raise PaymentStateError(
                f"Acerto {self.record_id} deve estar PENDING. Status atual: {self.payment_status}"
            )

        self.payment_status = 'PAID'
        self.paid_at = timezone.now()
        self.paid_by = paid_by
        self.payment_reference = payment_reference
        self.proof_url = proof_url
        self.proof_file_name = proof_file_name
        self.save(update_fields=self.PAYMENT_FIELDS + ['updated_at'])

    def cancel(self):
        """Cancela um acerto ainda não pago"""
        if self.payment_status != 'PENDING':
            raise PaymentStateError(
                f"Apenas acertos PENDING podem ser cancelados. Status atual: {self.payment_status}"
            )

        self.payment_status = 'CANCELLED'
        self.save(update_fields=['payment_status', 'updated_at'])
