from datetime import timedelta
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class DriverProfile(models.Model):
    """Perfil do motorista TVDE com integrações, custos fixos e dados bancários"""

    # Status do Cadastro
    STATUS_CHOICES = [
        ('PENDING', 'Pendente - Aguardando aprovação'),
        ('ACTIVE', 'Ativo'),
        ('INACTIVE', 'Inativo'),
    ]

    # Tipo de motorista
    TYPE_CHOICES = [
        ('AFFILIATE', 'Afiliado - Viatura própria'),
        ('RENTER', 'Locatário - Viatura alugada'),
    ]

    ADMIN_FEE_MODE_CHOICES = [
        ('FIXED', 'Valor fixo (€)'),
        ('PERCENT', 'Percentual (%)'),
    ]

    # === DADOS PESSOAIS ===
    nome_completo = models.CharField(max_length=200, verbose_name='Nome Completo')
    email = models.EmailField(verbose_name='Email', blank=True)
    telefone = models.CharField(max_length=20, blank=True, verbose_name='Telefone')

    # === VINCULO E CUSTOS FIXOS ===
    driver_type = models.CharField(
        max_length=10,
        choices=TYPE_CHOICES,
        default='AFFILIATE',
        verbose_name='Tipo de Motorista'
    )
    rental_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0)],
        verbose_name='Aluguel Semanal (€)',
        help_text='Apenas descontado a locatários'
    )
    vehicle_plate = models.CharField(max_length=20, blank=True, verbose_name='Matrícula')

    # Chaves externas por plataforma: {"uber": "<uuid>", "bolt": {"key": "<email>", "enabled": true}, ...}
    integrations = models.JSONField(default=dict, blank=True, verbose_name='Integrações')

    # === TAXA ADMINISTRATIVA ===
    admin_fee_mode = models.CharField(
        max_length=10,
        choices=ADMIN_FEE_MODE_CHOICES,
        blank=True,
        verbose_name='Taxa Adm personalizada',
        help_text='Vazio = regra global'
    )
    admin_fee_fixed_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        verbose_name='Taxa Adm fixa (€)'
    )
    admin_fee_percent_value = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        verbose_name='Taxa Adm (%)'
    )
    admin_fee_exempt_from = models.DateField(null=True, blank=True, verbose_name='Isenção de Taxa Adm desde')
    admin_fee_exempt_weeks = models.PositiveIntegerField(default=0, verbose_name='Semanas de isenção')
    admin_fee_exempt_reason = models.CharField(max_length=200, blank=True, verbose_name='Motivo da isenção')

    # === COMISSÃO E INDICAÇÕES ===
    commission_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        verbose_name='Comissão (%)'
    )
    referred_by = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='referrals',
        verbose_name='Indicado por'
    )

    # === DADOS BANCÁRIOS ===
    iban = models.CharField(max_length=34, blank=True, verbose_name='IBAN')

    # === STATUS E CONTROLE ===
    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default='PENDING',
        verbose_name='Status do Cadastro'
    )

    # === METADADOS ===
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name='Data de Aprovacao')
    approved_by = models.CharField(max_length=100, blank=True, verbose_name='Aprovado por')

    class Meta:
        verbose_name = 'Perfil de Motorista'
        verbose_name_plural = 'Perfis de Motoristas'
        ordering = ['nome_completo']

    def __str__(self):
        return f"{self.nome_completo} ({self.get_driver_type_display()})"

    @property
    def is_active(self):
        return self.status == 'ACTIVE'

    @property
    def is_renter(self):
        return self.driver_type == 'RENTER'

    def integration_key(self, name):
        """
        Retorna a chave externa de uma integração.

        Aceita tanto o formato antigo (string) como o formato objeto {"key": ...}.
        """
        value = (self.integrations or {}).get(name)
        if isinstance(value, dict):
            value = value.get('key')
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def is_admin_fee_exempt(self, week_start):
        """Verifica se a semana que começa em week_start está no período de isenção"""
        if not self.admin_fee_exempt_from or self.admin_fee_exempt_weeks <= 0 or week_start is None:
            return False
        end = self.admin_fee_exempt_from + timedelta(weeks=self.admin_fee_exempt_weeks)
        return self.admin_fee_exempt_from <= week_start < end
