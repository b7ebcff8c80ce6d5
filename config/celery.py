# config/celery.py

import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('stockledger')

# All CELERY_* keys in Django settings (namespace='CELERY')
app.config_from_object('django.conf:settings', namespace='CELERY')

# Picks up apps/*/tasks.py
app.autodiscover_tasks()
