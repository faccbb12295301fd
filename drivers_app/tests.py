from datetime import date
from types import SimpleNamespace

from django.test import TestCase

from .models import DriverProfile
from .registry import DriverRegistry, normalize_plate


def entry(**fields):
    values = {'source_driver_id': '', 'reference_id': '', 'vehicle_plate': '', 'platform': 'UBER'}
    values.update(fields)
    return SimpleNamespace(**values)


class DriverProfileTest(TestCase):

    def test_integration_key_formats(self):
        driver = DriverProfile(
            nome_completo='Xavier',
            integrations={'uber': ' uuid-1 ', 'bolt': {'key': 'x@mail.pt', 'enabled': True}, 'fuel_card': {}},
        )
        self.assertEqual(driver.integration_key('uber'), 'uuid-1')
        self.assertEqual(driver.integration_key('bolt'), 'x@mail.pt')
        self.assertIsNone(driver.integration_key('fuel_card'))
        self.assertIsNone(driver.integration_key('toll_card'))

    def test_admin_fee_exemption_window(self):
        driver = DriverProfile(admin_fee_exempt_from=date(2024, 1, 1), admin_fee_exempt_weeks=4)
        self.assertTrue(driver.is_admin_fee_exempt(date(2024, 1, 1)))
        self.assertTrue(driver.is_admin_fee_exempt(date(2024, 1, 22)))
        self.assertFalse(driver.is_admin_fee_exempt(date(2024, 1, 29)))
        self.assertFalse(driver.is_admin_fee_exempt(None))


class DriverRegistryTest(TestCase):
    """Resolução: id direto -> chave da plataforma -> matrícula"""

    def setUp(self):
        self.ana = DriverProfile.objects.create(
            nome_completo='Ana',
            integrations={'uber': 'UUID-ANA', 'fuel_card': {'key': '7001', 'enabled': True}},
            vehicle_plate='AA-11-BB',
        )
        self.bruno = DriverProfile.objects.create(
            nome_completo='Bruno',
            integrations={'bolt': {'key': 'Bruno@Mail.pt'}},
            vehicle_plate='CC-22-DD',
        )
        self.registry = DriverRegistry.load()

    def test_maps(self):
        self.assertEqual(self.registry.get(self.ana.pk), self.ana)
        self.assertIn('uuid-ana', self.registry.by_platform['UBER'])
        self.assertIn('bruno@mail.pt', self.registry.by_platform['BOLT'])
        self.assertIn('7001', self.registry.by_platform['FUEL_CARD'])
        self.assertIn('cc22dd', self.registry.by_plate)

    def test_direct(self):
        resolution = self.registry.resolve(entry(source_driver_id=str(self.bruno.pk), reference_id='uuid-ana'))
        self.assertEqual(resolution.driver, self.bruno)
        self.assertEqual(resolution.method, 'direct')
        self.assertFalse(resolution.is_fallback)

    def test_unknown_direct_id_falls_back(self):
        resolution = self.registry.resolve(entry(source_driver_id='9999', reference_id='Uuid-Ana'))
        self.assertEqual(resolution.driver, self.ana)
        self.assertEqual(resolution.method, 'platform_key')
        self.assertTrue(resolution.is_fallback)

    def test_platform_key_uses_entry_platform(self):
        resolution = self.registry.resolve(entry(platform='BOLT', reference_id='uuid-ana'))
        self.assertIsNone(resolution)

        resolution = self.registry.resolve(entry(platform='FUEL_CARD', reference_id='7001'))
        self.assertEqual(resolution.driver, self.ana)

    def test_plate(self):
        resolution = self.registry.resolve(entry(platform='TOLL_CARD', vehicle_plate='aa 11 bb'))
        self.assertEqual(resolution.driver, self.ana)
        self.assertEqual(resolution.method, 'plate')

    def test_unresolved(self):
        self.assertIsNone(self.registry.resolve(entry(reference_id='nada', vehicle_plate='ZZ-99-ZZ')))

    def test_normalize_plate(self):
        self.assertEqual(normalize_plate('AA-00-BB'), 'aa00bb')
        self.assertEqual(normalize_plate(None), '')
