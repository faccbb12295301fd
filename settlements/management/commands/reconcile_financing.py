"""
Management command para atualizar semanas restantes dos empréstimos.
Execução: python manage.py reconcile_financing
"""
from django.core.management.base import BaseCommand

from settlements.calculators.financing_calculator import reconcile_financing


class Command(BaseCommand):
    help = 'Recalcula semanas restantes e conclui empréstimos totalmente descontados'

    def handle(self, *args, **options):
        updated = reconcile_financing()
        self.stdout.write(self.style.SUCCESS(f'✅ {updated} financiamentos atualizados'))
