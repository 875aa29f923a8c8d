import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'storyboarder.settings')

app = Celery('storyboarder')
app.config_from_object('django.conf:settings', namespace='CELERY')

# Single process: all shared-key scenes draw on one API quota
app.conf.worker_pool = 'solo'
app.conf.worker_concurrency = 1
app.conf.broker_transport_options = {
    'visibility_timeout': 3600,
    'max_connections': 3
}

app.autodiscover_tasks()


@app.on_after_finalize.connect
def setup_periodic_tasks(sender, **kwargs):
    from django.conf import settings

    sender.add_periodic_task(
        settings.QUEUE_INTERVAL_S,
        sender.signature('studio.tasks.process_storyboard_queue'),
        name='process storyboard queue',
    )
    sender.add_periodic_task(
        crontab(minute=0),
        sender.signature('studio.tasks.cleanup_rate_windows'),
        name='cleanup rate windows',
    )
    sender.add_periodic_task(
        crontab(minute=30, hour=3),
        sender.signature('studio.tasks.cleanup_queue_jobs'),
        name='cleanup queue jobs',
    )
