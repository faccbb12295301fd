"""
WSGI config for tvde_fleet project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tvde_fleet.settings')

application = get_wsgi_application()
