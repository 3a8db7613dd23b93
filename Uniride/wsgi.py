"""
WSGI config for the Uniride project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "Uniride.settings")

application = get_wsgi_application()
