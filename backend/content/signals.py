"""
Django Signals for post-creation side effects.

Trade-off Discussion:
---------------------
The submission confirmation email is sent from a post_save receiver
instead of from create_submission().

PROS:
- The pipeline stays free of mail concerns
- Any code path that creates a Submission gets the email

CONS:
- Implicit behavior (can be surprising)

IMPORTANT: Signals do NOT fire on bulk_create() or QuerySet.update().
That is fine here - submissions are created one at a time.

transaction.on_commit defers the send until the row is durable, so a
rolled-back submission never produces an email.
"""

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Submission
from .notifications import send_submission_confirmation


@receiver(post_save, sender=Submission)
def confirm_submission_received(sender, instance, created, **kwargs):
    if created:
        transaction.on_commit(lambda: send_submission_confirmation(instance))
