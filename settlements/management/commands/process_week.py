"""
Management command para processar os acertos de uma semana.
Execução: python manage.py process_week --week 2024-W10
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from settlements.calculators import WeeklySettlementCalculator
from settlements.exceptions import InvalidWeekId
from settlements.services import SettlementGate
from settlements.utils import parse_week_id, week_id_for


class Command(BaseCommand):
    help = 'Calcula os acertos semanais (repasse) dos motoristas com registos na semana'

    def add_arguments(self, parser):
        parser.add_argument(
            '--week',
            type=str,
            help='Semana ISO (2024-W10). Se não informada, usa a semana atual'
        )
        parser.add_argument(
            '--driver-id',
            type=int,
            help='ID do motorista específico. Se não informado, processa todos'
        )
        parser.add_argument(
            '--force-refresh',
            action='store_true',
            help='Recalcula acertos PENDING já gravados (acertos pagos nunca são alterados)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Calcula sem gravar no banco (teste)'
        )

    def handle(self, *args, **options):
        week_id = options['week'] or week_id_for(timezone.localdate())
        driver_id = options['driver_id']
        dry_run = options['dry_run']

        try:
            week_start, week_end = parse_week_id(week_id)
        except InvalidWeekId as exc:
            raise CommandError(str(exc))

        if dry_run:
            self.stdout.write(self.style.WARNING('🔍 Modo DRY RUN - Nenhuma alteração será salva\n'))

        self.stdout.write(
            self.style.SUCCESS(f'📊 Processando acertos - {week_id} ({week_start} → {week_end})\n')
        )

        gate = SettlementGate()
        calculator = WeeklySettlementCalculator(gate=gate)

        if dry_run:
            records = gate.weekly_records(week_id, driver_id=driver_id, calculator=calculator)
            for record in records:
                self.stdout.write(
                    self.style.WARNING(
                        f"[DRY RUN] {record['driver_name']}: €{record['repasse']} ({record['data_source']})"
                    )
                )
            self.stdout.write(f'\n{len(records)} registos')
        else:
            results = calculator.process_week(week_id, driver_id=driver_id, force_refresh=options['force_refresh'])
            self._print_results(results, calculator.stats)

        # Mostrar log de debug
        if calculator.debug:
            self.stdout.write('\n📋 Log completo:')
            self.stdout.write(calculator.get_debug_log())

    def _print_results(self, results, stats):
        succeeded = [result for result in results if result.success]
        failed = [result for result in results if not result.success]

        self.stdout.write('\n' + '=' * 60)
        self.stdout.write(self.style.SUCCESS(f'✅ {len(succeeded)} acertos processados'))
        if failed:
            self.stdout.write(self.style.ERROR(f'❌ {len(failed)} falhas'))

        total_amount = sum(result.repasse for result in succeeded)
        self.stdout.write(f'Total a pagar: €{total_amount}')
        self.stdout.write(
            f"Registos: {stats['entries']} (diretos {stats['direct']}, fallback {stats['fallback']}, "
            f"sem motorista {stats['skipped']}), inativos ignorados: {stats['inactive']}"
        )

        self.stdout.write('\n📋 Acertos:')
        for result in succeeded:
            self.stdout.write(f'  • {result.driver_name}: €{result.repasse} [{result.outcome}]')
        for result in failed:
            self.stdout.write(self.style.ERROR(f'  • {result.driver_name}: {result.error}'))
