"""
WSGI config para o projeto Cali Brasil.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'calibrasil.settings')

application = get_wsgi_application()
