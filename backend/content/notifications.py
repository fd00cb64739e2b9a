"""
Outbound confirmation emails.

Fire-and-forget: a failed send is logged and swallowed, never raised
into the operation that triggered it.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.utils.html import escape

logger = logging.getLogger(__name__)


def send_submission_confirmation(submission) -> bool:
    """Tell the submitter their piece arrived. Returns False if the send failed."""
    subject = f"Submission Received - {submission.title}"
    text = (
        f"Hi {submission.author_name}, we've received your submission: "
        f"\"{submission.title}\". Our team will review it soon."
    )
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h2>Submission Received</h2>'
        f'<p>Hi {escape(submission.author_name)},</p>'
        f'<p>We\'ve received your submission: "<strong>{escape(submission.title)}</strong>"</p>'
        '<p>Our team will review it and get back to you soon. '
        'Thank you for sharing your work with us!</p>'
        '<p>Best regards,<br>The Editorial Team</p>'
        '</div>'
    )

    try:
        send_mail(
            subject,
            text,
            settings.DEFAULT_FROM_EMAIL,
            [submission.author_email],
            html_message=html,
        )
    except Exception:
        logger.exception(f"Submission confirmation email failed for submission {submission.pk}")
        return False
    return True
