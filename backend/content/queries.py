"""
Read Queries
============

Read-only lookups used by the HTTP layer. Every queryset pulls its
foreign keys with select_related so serializing a page costs one query,
not one per row.
"""

from typing import Optional

from django.db.models import Count, Q

from .exceptions import NotFoundError, ValidationError
from .models import Category, Comment, Post, Submission


def get_published_posts(category_slug: Optional[str] = None, author_id: Optional[int] = None):
    """
    Public listing, newest publication first.

    An unknown category slug filters nothing out, matching how the
    listing has always behaved for stale links.
    """
    queryset = (
        Post.objects
        .filter(status=Post.Status.PUBLISHED)
        .select_related('author', 'category')
        .defer('content')
        .order_by('-published_at', '-id')
    )

    if category_slug:
        category = Category.objects.filter(slug=category_slug).first()
        if category is not None:
            queryset = queryset.filter(category=category)

    if author_id is not None:
        queryset = queryset.filter(author_id=author_id)

    return queryset


def get_posts_by_author(author_id: int):
    """Every post the author owns, any status, newest first."""
    return (
        Post.objects
        .filter(author_id=author_id)
        .select_related('category')
        .order_by('-created_at', '-id')
    )


def get_published_post(slug: str) -> Post:
    post = (
        Post.objects
        .select_related('author', 'category')
        .filter(slug=slug, status=Post.Status.PUBLISHED)
        .first()
    )
    if post is None:
        raise NotFoundError(f"Post '{slug}' not found")
    return post


def get_submissions(status: Optional[str] = None, category: Optional[str] = None):
    """Moderation queue, most recent submission first."""
    queryset = Submission.objects.select_related('reviewed_by').order_by('-submitted_at', '-id')

    if status:
        if status not in Submission.Status.values:
            raise ValidationError(f"Invalid status '{status}'", field='status')
        queryset = queryset.filter(status=status)

    if category:
        if category not in Submission.Genre.values:
            raise ValidationError(f"Invalid category '{category}'", field='category')
        queryset = queryset.filter(category=category)

    return queryset


def get_active_categories():
    return Category.objects.filter(is_active=True).order_by('order', 'name')


def get_all_posts(status: Optional[str] = None, author_id: Optional[int] = None):
    """Moderator listing: every status, newest first, body deferred."""
    queryset = (
        Post.objects
        .select_related('author', 'category')
        .defer('content')
        .order_by('-created_at', '-id')
    )

    if status:
        if status not in Post.Status.values:
            raise ValidationError(f"Invalid status '{status}'", field='status')
        queryset = queryset.filter(status=status)

    if author_id is not None:
        queryset = queryset.filter(author_id=author_id)

    return queryset


def get_dashboard_stats() -> dict:
    """
    Counts for the moderation dashboard.

    TOTAL QUERIES: 4
    - 1 aggregate over posts
    - 1 aggregate over comments
    - 1 aggregate over submissions
    - 1 for the recent posts
    """
    post_counts = Post.objects.aggregate(
        total_posts=Count('id'),
        published_posts=Count('id', filter=Q(status=Post.Status.PUBLISHED)),
        draft_posts=Count('id', filter=Q(status=Post.Status.DRAFT)),
        archived_posts=Count('id', filter=Q(status=Post.Status.ARCHIVED)),
    )
    comment_counts = Comment.objects.aggregate(
        pending_comments=Count('id', filter=Q(is_approved=False)),
    )
    submission_counts = Submission.objects.aggregate(
        pending_submissions=Count('id', filter=Q(status=Submission.Status.PENDING)),
    )

    recent_posts = list(get_all_posts()[:5])

    return {
        'stats': {**post_counts, **comment_counts, **submission_counts},
        'recent_posts': recent_posts,
    }
