"""
DriverRegistry: índice em memória dos motoristas para atribuir registos
semanais (Uber, Bolt, cartão combustível, portagens) ao motorista certo.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_PLATE_CLEANUP = re.compile(r'[^a-z0-9]')

# Plataforma do registo -> nome da integração no perfil do motorista
PLATFORM_INTEGRATIONS = {
    'UBER': 'uber',
    'BOLT': 'bolt',
    'FUEL_CARD': 'fuel_card',
}

METHOD_DIRECT = 'direct'
METHOD_PLATFORM_KEY = 'platform_key'
METHOD_PLATE = 'plate'


def normalize_plate(plate):
    """'AA-00-BB' -> 'aa00bb'"""
    if not plate:
        return ''
    return _PLATE_CLEANUP.sub('', str(plate).lower())


@dataclass(frozen=True)
class Resolution:
    driver: object
    method: str

    @property
    def is_fallback(self):
        return self.method != METHOD_DIRECT


def resolve_direct(entry, registry):
    driver_id = getattr(entry, 'source_driver_id', None)
    if isinstance(driver_id, str) and driver_id.strip():
        return registry.by_id.get(driver_id.strip())
    return None


def resolve_platform_key(entry, registry):
    reference_id = getattr(entry, 'reference_id', None)
    if not reference_id:
        return None
    index = registry.by_platform.get(getattr(entry, 'platform', None))
    if index is None:
        return None
    return index.get(str(reference_id).strip().lower())


def resolve_plate(entry, registry):
    plate = normalize_plate(getattr(entry, 'vehicle_plate', None))
    if not plate:
        return None
    return registry.by_plate.get(plate)


# Ordem fixa de tentativas: id direto -> chave da plataforma -> matrícula
RESOLUTION_STRATEGIES = (
    (METHOD_DIRECT, resolve_direct),
    (METHOD_PLATFORM_KEY, resolve_platform_key),
    (METHOD_PLATE, resolve_plate),
)


class DriverRegistry:
    """
    Mapas de busca construídos uma vez por processamento:
    - por id
    - por chave Uber / Bolt / cartão combustível (lower-case)
    - por matrícula normalizada
    """

    def __init__(self, drivers):
        self.by_id = {}
        self.by_platform = {platform: {} for platform in PLATFORM_INTEGRATIONS}
        self.by_plate = {}

        for driver in drivers:
            self.by_id[str(driver.pk)] = driver

            for platform, integration in PLATFORM_INTEGRATIONS.items():
                key = driver.integration_key(integration)
                if key:
                    self.by_platform[platform][key.lower()] = driver

            plate = normalize_plate(driver.vehicle_plate)
            if plate:
                self.by_plate[plate] = driver

        logger.info(
            f"📋 Mapas criados: {len(self.by_id)} motoristas, "
            f"{len(self.by_platform['UBER'])} Uber, {len(self.by_platform['BOLT'])} Bolt, "
            f"{len(self.by_platform['FUEL_CARD'])} cartões, {len(self.by_plate)} matrículas"
        )

    @classmethod
    def load(cls):
        """Constrói o índice a partir de todos os motoristas registados"""
        from drivers_app.models import DriverProfile
        return cls(DriverProfile.objects.all())

    def get(self, driver_id):
        return self.by_id.get(str(driver_id))

    def resolve(self, entry) -> Optional[Resolution]:
        """Primeira estratégia com sucesso ganha; None se o registo não for atribuível"""
        for method, strategy in RESOLUTION_STRATEGIES:
            driver = strategy(entry, self)
            if driver is not None:
                return Resolution(driver=driver, method=method)
        return None
