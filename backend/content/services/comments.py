"""
Comment Thread Moderator
========================

Owns comment creation, parent/reply linkage and the approval gate.

VISIBILITY:
-----------
Every comment is created with is_approved=False. Only a moderator flips
the flag, and only approved comments ever reach the public thread.
Rejection flips the flag back - it never deletes.

THE REPLY LIST:
---------------
A parent's reply list is "all comments whose parent_id is the parent",
ordered by (created_at, id). Submitting a reply is one INSERT of the
child row, which is an atomic list-append at the store level: two replies
arriving at the same time both land, neither overwrites the other.

DELETION CASCADE:
-----------------
remove_comment() detaches the comment from its parent's reply list,
deletes its direct replies, then the comment itself. The parent FK is
ON DELETE CASCADE, so anything nested below a reply goes with it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from django.db.models import Count, Prefetch, Q
from django.utils import timezone

from ..exceptions import NotFoundError, ValidationError
from ..models import Comment, Post

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentEcho:
    """
    What a submitter gets back: enough to render "pending review",
    nothing about moderation state.
    """
    id: int
    author_name: str
    content: str
    created_at: datetime


def get_comment(comment_id: int) -> Comment:
    try:
        return Comment.objects.get(pk=comment_id)
    except Comment.DoesNotExist:
        raise NotFoundError(f"Comment {comment_id} does not exist")


def reply_ids(comment: Comment) -> List[int]:
    """Ids of the direct replies, in thread order."""
    return list(
        Comment.objects
        .filter(parent_id=comment.pk)
        .order_by('created_at', 'id')
        .values_list('id', flat=True)
    )


def submit_comment(
    post_id: int,
    author_name: str,
    content: str,
    author_email: Optional[str] = None,
    parent_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> CommentEcho:
    """
    Create an unapproved comment, optionally as a reply.

    Anyone may submit - anonymous or signed in.

    Raises:
        NotFoundError: post missing, or parent_id does not resolve to a
            comment on this same post
        ValidationError: blank name or content
    """
    if not Post.objects.filter(pk=post_id).exists():
        raise NotFoundError(f"Post {post_id} does not exist")

    author_name = (author_name or '').strip()
    content = (content or '').strip()
    if not author_name:
        raise ValidationError("Author name is required", field='author_name')
    if not content:
        raise ValidationError("Comment content is required", field='content')

    if parent_id is not None:
        # A parent on another post is indistinguishable from a missing one
        if not Comment.objects.filter(pk=parent_id, post_id=post_id).exists():
            raise NotFoundError(f"Parent comment {parent_id} not found on post {post_id}")

    comment = Comment.objects.create(
        post_id=post_id,
        author_name=author_name,
        author_email=(author_email or '').strip().lower(),
        user_id=user_id,
        content=content,
        parent_id=parent_id,
        is_approved=False,
    )

    logger.info(f"Comment {comment.pk} submitted on post {post_id} (parent={parent_id})")
    return CommentEcho(
        id=comment.pk,
        author_name=comment.author_name,
        content=comment.content,
        created_at=comment.created_at,
    )


def list_public_comments(post_id: int) -> List[Comment]:
    """
    Approved top-level comments for a post, newest first.

    Each carries `approved_replies` (oldest first) - unapproved replies are
    filtered at the query, not in Python.

    TOTAL QUERIES: 2
    - 1 for top-level comments
    - 1 for every approved reply of those comments
    """
    approved_replies = Prefetch(
        'replies',
        queryset=Comment.objects.filter(is_approved=True).order_by('created_at', 'id'),
        to_attr='approved_replies'
    )
    return list(
        Comment.objects
        .filter(post_id=post_id, is_approved=True, parent__isnull=True)
        .order_by('-created_at', '-id')
        .prefetch_related(approved_replies)
    )


def moderate_comment(comment_id: int, approve: bool) -> Comment:
    """Flip the approval flag. Replies keep their own flag."""
    comment = get_comment(comment_id)
    comment.is_approved = bool(approve)
    comment.save(update_fields=['is_approved', 'updated_at'])

    logger.info(f"Comment {comment_id} {'approved' if approve else 'rejected'}")
    return comment


def remove_comment(comment_id: int) -> None:
    """
    Delete a comment and its direct replies.

    Sequential and best-effort. The parent's reply list is derived from
    parent_id, so deleting the row is what detaches it.
    """
    comment = get_comment(comment_id)

    replies_deleted, _ = Comment.objects.filter(parent_id=comment.pk).delete()
    comment.delete()

    logger.info(f"Comment {comment_id} removed (parent={comment.parent_id}, {replies_deleted} reply rows)")


def list_comments(status: Optional[str] = None, post_id: Optional[int] = None):
    """
    Moderator view of comments, newest first.

    status: 'approved', 'pending' or None for both.
    """
    queryset = Comment.objects.select_related('post', 'parent').order_by('-created_at', '-id')

    if status == 'approved':
        queryset = queryset.filter(is_approved=True)
    elif status == 'pending':
        queryset = queryset.filter(is_approved=False)
    elif status is not None:
        raise ValidationError(f"Invalid status '{status}'", field='status')

    if post_id is not None:
        queryset = queryset.filter(post_id=post_id)

    return queryset


def comment_stats() -> dict:
    """Totals for the moderation dashboard in a single aggregate query."""
    now = timezone.now()
    start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    return Comment.objects.aggregate(
        total_comments=Count('id'),
        approved_comments=Count('id', filter=Q(is_approved=True)),
        pending_comments=Count('id', filter=Q(is_approved=False)),
        comments_this_month=Count('id', filter=Q(created_at__gte=start_of_month)),
    )
