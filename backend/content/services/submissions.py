"""
Submission Review Pipeline
==========================

pending -> approved | rejected, then (approved only) -> a draft Post.

REVIEW RULES:
-------------
- A moderator reviews a pending submission exactly once.
- Reviewing again with the SAME decision is idempotent: reviewer, time
  and notes are refreshed, the state does not move.
- Reviewing again with a DIFFERENT decision is a StateError - once
  reviewed, the state is final.

CONVERSION SAGA:
----------------
There is no transaction spanning Post and Submission. Conversion is two
independent steps:

    1. create_post(...)            -> new draft Post
    2. submission.converted_post = post

If step 1 fails nothing changed. If step 2 fails the post exists but the
submission does not point at it: PartialConversionError carries the post
id so the caller can link or delete it. A submission that already points
at a post is not converted again.
"""

import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError
from django.utils import timezone

from ..derive import make_excerpt
from ..exceptions import (
    NotFoundError,
    PartialConversionError,
    StateError,
    ValidationError,
)
from ..models import Post, Profile, Submission
from ..permissions import Caller, authorize
from . import posts

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('title', 'content', 'author_name', 'author_email')
REVIEW_DECISIONS = (Submission.Status.APPROVED, Submission.Status.REJECTED)


def get_submission(submission_id: int) -> Submission:
    try:
        return Submission.objects.select_related('reviewed_by').get(pk=submission_id)
    except Submission.DoesNotExist:
        raise NotFoundError(f"Submission {submission_id} does not exist")


def create_submission(fields: Dict[str, Any]) -> Submission:
    """
    Accept a reader submission into the review queue as `pending`.

    The confirmation email is sent by a post_save receiver once the row is
    committed - a mail failure never fails the submission.
    """
    cleaned = {}
    for name in REQUIRED_FIELDS:
        value = (fields.get(name) or '').strip()
        if not value:
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} is required", field=name)
        cleaned[name] = value

    category = fields.get('category')
    if category not in Submission.Genre.values:
        raise ValidationError(
            f"Category must be one of: {', '.join(Submission.Genre.values)}",
            field='category'
        )

    submission = Submission.objects.create(
        title=cleaned['title'],
        content=cleaned['content'],
        author_name=cleaned['author_name'],
        author_email=cleaned['author_email'].lower(),
        category=category,
        status=Submission.Status.PENDING,
    )

    logger.info(f"Submission {submission.pk} received in '{category}'")
    return submission


def review_submission(
    submission_id: int,
    caller: Caller,
    decision: str,
    notes: Optional[str] = None,
) -> Submission:
    """
    Record a moderator's decision.

    Raises:
        PermissionDeniedError: caller is not a moderator
        ValidationError: decision is not approved/rejected
        NotFoundError: submission missing
        StateError: submission was already reviewed with another decision
    """
    authorize(caller, Profile.Role.ADMIN)

    if decision not in REVIEW_DECISIONS:
        raise ValidationError("Status must be approved or rejected", field='status')

    submission = get_submission(submission_id)

    if submission.status != Submission.Status.PENDING and submission.status != decision:
        raise StateError(
            f"Submission {submission_id} is already {submission.status}",
            status=submission.status
        )

    submission.status = decision
    submission.reviewed_by_id = caller.user_id
    submission.reviewed_at = timezone.now()
    if notes:
        submission.notes = notes.strip()
    submission.save(update_fields=['status', 'reviewed_by', 'reviewed_at', 'notes'])

    logger.info(f"Submission {submission_id} {decision} by user {caller.user_id}")
    return submission


def convert_submission(
    submission_id: int,
    caller: Caller,
    category_id: int,
    tags: Optional[list] = None,
    is_downloadable: bool = False,
) -> Post:
    """
    Turn an approved submission into a draft Post authored by the reviewer.

    Raises:
        NotFoundError: submission missing
        StateError: submission not approved, or already converted
        ValidationError: category does not exist
        ConflictError: the derived slug is taken
        PartialConversionError: post created, submission could not be marked
    """
    authorize(caller, Profile.Role.ADMIN)
    submission = get_submission(submission_id)

    if submission.status != Submission.Status.APPROVED:
        raise StateError(
            "Only approved submissions can be converted to posts",
            status=submission.status
        )
    if submission.converted_post_id is not None:
        raise StateError(
            f"Submission {submission_id} was already converted",
            post_id=submission.converted_post_id
        )

    # Step 1
    post = posts.create_post(caller, {
        'title': submission.title,
        'content': submission.content,
        'excerpt': make_excerpt(submission.content),
        'category': category_id,
        'tags': tags or [],
        'status': Post.Status.DRAFT,
        'is_downloadable': is_downloadable,
    })

    # Step 2
    try:
        updated = (
            Submission.objects
            .filter(pk=submission.pk, converted_post__isnull=True)
            .update(converted_post=post)
        )
    except DatabaseError as exc:
        logger.exception(f"Submission {submission_id} converted to post {post.pk} but not marked")
        raise PartialConversionError(
            f"Post {post.pk} was created but submission {submission_id} could not be marked converted",
            post_id=post.pk
        ) from exc

    if not updated:
        # Another reviewer converted it between our check and our write
        raise PartialConversionError(
            f"Submission {submission_id} was converted concurrently; post {post.pk} is a duplicate",
            post_id=post.pk
        )

    submission.converted_post = post
    logger.info(f"Submission {submission_id} converted to post {post.pk} by user {caller.user_id}")
    return post
