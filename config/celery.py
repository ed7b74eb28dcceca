"""
Celery application for background order processing.

Tasks are discovered from each installed app's ``tasks`` module.
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('fulfillment')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
