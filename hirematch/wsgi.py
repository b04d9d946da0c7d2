"""
WSGI config for the HireMatch project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hirematch.settings')

application = get_wsgi_application()
