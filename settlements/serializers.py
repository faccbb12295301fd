"""
Serializers da API de acertos semanais.
"""
from rest_framework import serializers

from .exceptions import InvalidWeekId
from .models import WeeklySettlement
from .utils import parse_week_id


def validate_week_id(value):
    try:
        parse_week_id(value)
    except InvalidWeekId as exc:
        raise serializers.ValidationError(str(exc))
    return value


class WeeklySettlementSerializer(serializers.ModelSerializer):
    """Acerto gravado (fonte do recibo)"""
    driver_id = serializers.IntegerField(read_only=True)
    payment_status_display = serializers.CharField(source='get_payment_status_display', read_only=True)

    class Meta:
        model = WeeklySettlement
        fields = [
            'record_id',
            'driver_id',
            'driver_name',
            'driver_type',
            'week_id',
            'week_start',
            'week_end',
            'uber_total',
            'bolt_total',
            'ganhos_total',
            'iva_valor',
            'ganhos_menos_iva',
            'despesas_adm',
            'combustivel',
            'portagens',
            'viaverde',
            'aluguel',
            'financing_details',
            'total_despesas',
            'bonus_meta_amount',
            'bonus_referral_amount',
            'commission_amount',
            'total_bonus_amount',
            'bonus_pending',
            'repasse',
            'platform_data',
            'iban',
            'payment_status',
            'payment_status_display',
            'paid_at',
            'paid_by',
            'payment_reference',
            'proof_url',
            'proof_file_name',
            'calculated_at',
        ]
        read_only_fields = fields


class ProcessWeekSerializer(serializers.Serializer):
    """Parâmetros do processamento de uma semana"""
    driver_id = serializers.IntegerField(required=False, allow_null=True)
    force_refresh = serializers.BooleanField(default=False)


class WeeklyRecordsQuerySerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(required=False, allow_null=True)
    merge_live = serializers.BooleanField(default=False)


class MarkPaidSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    proof_url = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')
    proof_file_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
