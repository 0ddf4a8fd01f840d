import logging

import requests
from celery import Celery, Task, shared_task
from flask import Flask, current_app

from utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def celery_init_app(app: Flask) -> Celery:
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app


@shared_task(
    name="notifications.send_confirmation_email",
    autoretry_for=(UpstreamError, requests.RequestException),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=5,
)
def send_confirmation_email_task(booking_id):
    """Deliver the booking confirmation email outside the verification request."""
    from services.notifications import send_confirmation_email
    from utils.deps import booking_store, get_mailer

    result = send_confirmation_email(booking_store(), get_mailer(), {"booking_id": booking_id})
    current_app.logger.info("Confirmation email task done for booking %s", booking_id)
    return result["email_id"]


def enqueue_confirmation_email(booking_id) -> None:
    send_confirmation_email_task.delay(booking_id)
    logger.info("Queued confirmation email for booking %s", booking_id)
