"""
WSGI config for Family Tree.

Exposes the WSGI callable as a module-level variable named ``application``.
Production deployments should set `DJANGO_SETTINGS_MODULE=familytree.settings.prod`.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "familytree.settings.dev")

application = get_wsgi_application()
