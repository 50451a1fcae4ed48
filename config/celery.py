import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('medbill')

# Every CELERY_* setting in Django settings configures the app
app.config_from_object('django.conf:settings', namespace='CELERY')

# Picks up billing/tasks.py
app.autodiscover_tasks()
