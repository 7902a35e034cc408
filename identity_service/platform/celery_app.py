from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from identity_service.platform.config import settings

CLEANUP_TASKS = "identity_service.features.auth.workers.cleanup_tasks"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Only maintenance work runs here; request handling never waits on a task.
    Everything is routed to the "maintenance" queue and scheduled by Celery Beat.
    """
    celery_app = Celery(
        "identity_service",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
        result_expires=3600,
        task_routes={
            f"{CLEANUP_TASKS}.*": {"queue": "maintenance"},
        },
        task_queues=(
            Queue("default"),
            Queue("maintenance"),
        ),
        task_default_queue="default",
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        beat_schedule={
            "purge-expired-refresh-tokens": {
                "task": f"{CLEANUP_TASKS}.purge_expired_refresh_tokens",
                "schedule": crontab(hour=3, minute=0),
            },
            "clear-expired-verification-artifacts": {
                "task": f"{CLEANUP_TASKS}.clear_expired_artifacts",
                "schedule": crontab(hour=2, minute=0),
            },
            "deactivate-unverified-accounts": {
                "task": f"{CLEANUP_TASKS}.deactivate_unverified_accounts",
                "schedule": crontab(hour=4, minute=0, day_of_week="sunday"),
            },
            "delete-stale-inactive-accounts": {
                "task": f"{CLEANUP_TASKS}.delete_stale_inactive_accounts",
                "schedule": crontab(hour=5, minute=0, day_of_week="sunday"),
            },
        },
    )

    celery_app.autodiscover_tasks(["identity_service.features.auth.workers"], related_name="cleanup_tasks")

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
