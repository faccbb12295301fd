from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class FinanceConfiguration(models.Model):
    """Configuração financeira global dos acertos semanais - Singleton pattern"""

    BASE_CHOICES = [
        ('GANHOS_BRUTOS', 'Ganhos brutos (Uber + Bolt)'),
        ('GANHOS_MENOS_IVA', 'Ganhos - IVA'),
        ('GANHOS_BRUTOS_MENOS_DESPESAS', 'Ganhos - despesas'),
        ('GANHOS_MENOS_IVA_MENOS_DESPESAS', 'Ganhos - IVA - despesas'),
    ]

    # Taxa administrativa
    admin_fee_percent = models.DecimalField(
        "Taxa Adm (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal('7.00'),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    admin_fee_fixed_default = models.DecimalField(
        "Taxa Adm fixa por omissão (€)",
        max_digits=10,
        decimal_places=2,
        default=Decimal('25.00'),
        validators=[MinValueValidator(0)],
        help_text="Usada quando o motorista tem taxa fixa sem valor definido",
    )
    admin_fee_base = models.CharField(
        "Base da Taxa Adm",
        max_length=40,
        choices=BASE_CHOICES,
        default='GANHOS_MENOS_IVA',
    )

    # IVA retido sobre os ganhos das plataformas
    vat_percent = models.DecimalField(
        "IVA (%)",
        max_digits=5,
        decimal_places=2,
        default=Decimal('6.00'),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    referral_bonus_amount = models.DecimalField(
        "Bónus por indicação (€)",
        max_digits=10,
        decimal_places=2,
        default=Decimal('25.00'),
        validators=[MinValueValidator(0)],
    )
    referral_min_weeks = models.PositiveIntegerField(
        "Semanas pagas mínimas do indicado",
        default=4,
        help_text="O bónus por indicação só é pago depois de o indicado ter este número de semanas pagas",
    )

    updated_at = models.DateTimeField("Atualizado em", auto_now=True)

    class Meta:
        verbose_name = "Configuração Financeira"
        verbose_name_plural = "Configurações Financeiras"

    def __str__(self) -> str:
        return f"Taxa Adm {self.admin_fee_percent}% / IVA {self.vat_percent}%"

    @classmethod
    def get_config(cls):
        """Retorna a única instância de configuração (singleton pattern)"""
        config, created = cls.objects.get_or_create(pk=1)
        return config

    def save(self, *args, **kwargs):
        """Garante que só existe uma instância e invalida o cache"""
        self.pk = 1
        super().save(*args, **kwargs)

        from system_config.services.finance_config import invalidate_finance_settings
        invalidate_finance_settings()

    def delete(self, *args, **kwargs):
        """Previne deleção da configuração"""
        pass
