"""
API JSON dos acertos semanais.
"""
import logging

from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .calculators import WeeklySettlementCalculator
from .exceptions import PaymentStateError
from .models import WeeklySettlement
from .serializers import (
    MarkPaidSerializer,
    ProcessWeekSerializer,
    WeeklyRecordsQuerySerializer,
    WeeklySettlementSerializer,
    validate_week_id,
)
from .services import SettlementGate, available_week_ids

logger = logging.getLogger(__name__)


def _invalid_week(exc):
    return Response({
        'success': False,
        'message': ' '.join(str(detail) for detail in exc.detail),
    }, status=status.HTTP_400_BAD_REQUEST)


class SettlementWeekViewSet(viewsets.ViewSet):
    """Semanas disponíveis, processamento e registos de leitura"""
    permission_classes = [IsAuthenticated]
    lookup_field = 'week_id'
    lookup_value_regex = r'\d{4}-W\d{2}'

    def list(self, request):
        weeks = available_week_ids()
        return Response({
            'success': True,
            'weeks': weeks,
            'count': len(weeks),
        })

    @action(detail=True, methods=['post'])
    def process(self, request, week_id=None):
        """Calcula e grava os acertos da semana"""
        try:
            validate_week_id(week_id)
        except ValidationError as exc:
            return _invalid_week(exc)

        serializer = ProcessWeekSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        calculator = WeeklySettlementCalculator(gate=SettlementGate())
        results = calculator.process_week(
            week_id,
            driver_id=serializer.validated_data.get('driver_id'),
            force_refresh=serializer.validated_data['force_refresh'],
        )
        logger.info(f"📊 {request.user} processou {week_id}: {len(results)} resultados")

        return Response({
            'success': True,
            'week_id': week_id,
            'results': [result.to_dict() for result in results],
            'stats': calculator.stats,
        })

    @action(detail=True, methods=['get'])
    def records(self, request, week_id=None):
        """Acertos gravados e calculados em memória, sem gravar"""
        try:
            validate_week_id(week_id)
        except ValidationError as exc:
            return _invalid_week(exc)

        query = WeeklyRecordsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        records = SettlementGate().weekly_records(
            week_id,
            driver_id=query.validated_data.get('driver_id'),
            merge_live=query.validated_data['merge_live'],
        )
        return Response({
            'success': True,
            'week_id': week_id,
            'records': records,
            'count': len(records),
        })


class WeeklySettlementViewSet(viewsets.ReadOnlyModelViewSet):
    """Acertos gravados (driverPayments)"""
    queryset = WeeklySettlement.objects.select_related('driver')
    serializer_class = WeeklySettlementSerializer
    permission_classes = [IsAuthenticated]
    lookup_field = 'record_id'
    lookup_value_regex = r'[^/]+'
    pagination_class = None

    def get_queryset(self):
        queryset = super().get_queryset()
        week_id = self.request.query_params.get('week_id')
        if week_id:
            queryset = queryset.filter(week_id=week_id)
        payment_status = self.request.query_params.get('payment_status')
        if payment_status:
            queryset = queryset.filter(payment_status=payment_status.upper())
        return queryset

    @action(detail=True, methods=['post'], url_path='mark-paid')
    def mark_paid(self, request, record_id=None):
        """Marca o acerto como pago (só campos de pagamento)"""
        settlement = self.get_object()
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            settlement.mark_as_paid(paid_by=request.user.get_username(), **serializer.validated_data)
        except PaymentStateError as exc:
            return Response({
                'success': False,
                'message': str(exc),
            }, status=status.HTTP_409_CONFLICT)

        return Response({
            'success': True,
            'message': 'Acerto marcado como pago',
            'payment': self.get_serializer(settlement).data,
        })

    @action(detail=True, methods=['post'])
    def cancel(self, request, record_id=None):
        settlement = self.get_object()
        try:
            settlement.cancel()
        except PaymentStateError as exc:
            return Response({
                'success': False,
                'message': str(exc),
            }, status=status.HTTP_409_CONFLICT)

        return Response({
            'success': True,
            'message': 'Acerto cancelado',
            'payment': self.get_serializer(settlement).data,
        })
