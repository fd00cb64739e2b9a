"""
Post Lifecycle Manager
======================

Owns the Post state machine (draft -> published -> archived) and the
derived fields that ride along with it.

DERIVED FIELDS:
---------------
- slug: re-derived ONLY when `title` is part of the current write.
  An unrelated edit never moves a post's URL.
- read_time: recomputed ONLY when `content` is part of the current write.
- published_at: stamped on the first transition into `published`.
  Never overwritten, never cleared - archiving keeps it.

CONCURRENCY STRATEGY:
--------------------
Problem: Two editors pick titles that derive to the same slug
Naive: Check slug free -> save -> RACE CONDITION!

Solution: Unique index on Post.slug + IntegrityError translation
    - Pre-check gives a friendly ConflictError in the common case
    - The index rejects the loser of a real race
    - On IntegrityError we re-check the slug once; a taken slug becomes
      ConflictError, anything else propagates unchanged
    - The engine never auto-retries with a different slug

Problem: Two readers download the same post at the same moment
Solution: UPDATE ... SET download_count = download_count + 1 via F()

Problem: An editor saves while downloads are being counted
Solution: save(update_fields=...) writes only the patched columns, so a
stale in-memory download_count is never written back.
"""

import logging
from typing import Any, Dict, Iterable

from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone

from ..derive import derive_slug, estimate_read_time
from ..exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..models import Category, Comment, Post, Profile, default_font_settings
from ..permissions import Caller, authorize

logger = logging.getLogger(__name__)

# Fields a caller may supply on create/update. Everything else is derived.
EDITABLE_FIELDS = (
    'title',
    'description',
    'content',
    'excerpt',
    'category',
    'tags',
    'status',
    'is_downloadable',
    'font_settings',
    'featured_image',
    'image_url',
)


def get_post(post_id: int) -> Post:
    try:
        return Post.objects.select_related('author', 'category').get(pk=post_id)
    except Post.DoesNotExist:
        raise NotFoundError(f"Post {post_id} does not exist")


def _text(fields: Dict[str, Any], name: str) -> str:
    value = fields.get(name)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"{name.capitalize()} must be a string", field=name)
    return value.strip()


def _require_text(fields: Dict[str, Any], name: str) -> str:
    value = _text(fields, name)
    if not value:
        raise ValidationError(f"{name.capitalize()} is required", field=name)
    return value


def _validate_font_settings(value) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("Font settings must be an object", field='font_settings')
    return value


def _resolve_category(category) -> Category:
    if isinstance(category, Category):
        category = category.pk
    if category in (None, ''):
        raise ValidationError("Category is required", field='category')
    try:
        return Category.objects.get(pk=category)
    except (Category.DoesNotExist, ValueError, TypeError):
        raise ValidationError(f"Category {category} not found", field='category')


def _validate_status(value: str) -> str:
    if value not in Post.Status.values:
        raise ValidationError(f"Invalid status '{value}'", field='status')
    return value


def _validate_tags(value) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError("Tags must be a list", field='tags')
    return [str(tag).strip() for tag in value]


def _slug_for(title: str, exclude_pk=None) -> str:
    slug = derive_slug(title)
    if not slug:
        raise ValidationError("Title must contain at least one letter or digit", field='title')

    taken = Post.objects.filter(slug=slug)
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)
    if taken.exists():
        raise ConflictError(f"A post with slug '{slug}' already exists", slug=slug)
    return slug


def _translate_slug_race(exc: IntegrityError, slug: str, exclude_pk=None):
    """
    Called after the unique index rejected a write. Re-check the slug once:
    if another post now holds it, the caller gets a ConflictError.
    """
    taken = Post.objects.filter(slug=slug)
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)
    if taken.exists():
        logger.info(f"Slug race lost for '{slug}'")
        return ConflictError(f"A post with slug '{slug}' already exists", slug=slug)
    return exc


def _stamp_publication(post: Post) -> bool:
    if post.status == Post.Status.PUBLISHED and post.published_at is None:
        post.published_at = timezone.now()
        return True
    return False


def create_post(caller: Caller, fields: Dict[str, Any]) -> Post:
    """
    Create a post owned by the caller.

    Starts as `draft` unless `status` is supplied. Runs the deriver for
    slug and read time.

    Raises:
        PermissionDeniedError: caller has no writer role
        ValidationError: blank title/content, unknown category, bad status
        ConflictError: derived slug already taken
    """
    authorize(caller, Profile.Role.AUTHOR)

    title = _require_text(fields, 'title')
    content = _require_text(fields, 'content')
    category = _resolve_category(fields.get('category'))
    status = _validate_status(fields.get('status') or Post.Status.DRAFT)
    slug = _slug_for(title)

    font_settings = default_font_settings()
    font_settings.update(_validate_font_settings(fields.get('font_settings')))

    post = Post(
        title=title,
        slug=slug,
        description=_text(fields, 'description'),
        content=content,
        excerpt=_text(fields, 'excerpt'),
        category=category,
        author_id=caller.user_id,
        status=status,
        tags=_validate_tags(fields.get('tags')),
        read_time=estimate_read_time(content),
        font_settings=font_settings,
        is_downloadable=bool(fields.get('is_downloadable', False)),
        featured_image=_text(fields, 'featured_image') or _text(fields, 'image_url'),
        image_url=_text(fields, 'image_url'),
    )
    _stamp_publication(post)

    try:
        with transaction.atomic():
            post.save(force_insert=True)
    except IntegrityError as exc:
        raise _translate_slug_race(exc, slug)

    logger.info(f"Post {post.pk} '{post.slug}' created by user {caller.user_id} as {post.status}")
    return post


def _apply_patch(post: Post, patch: Dict[str, Any]) -> Iterable[str]:
    """Apply the patch in memory and return the columns that changed."""
    changed = []

    if 'title' in patch:
        title = _require_text(patch, 'title')
        post.title = title
        post.slug = _slug_for(title, exclude_pk=post.pk)
        changed += ['title', 'slug']

    if 'content' in patch:
        post.content = _require_text(patch, 'content')
        post.read_time = estimate_read_time(post.content)
        changed += ['content', 'read_time']

    if 'category' in patch:
        post.category = _resolve_category(patch['category'])
        changed.append('category')

    if 'status' in patch:
        post.status = _validate_status(patch['status'])
        changed.append('status')
        if _stamp_publication(post):
            changed.append('published_at')

    if 'tags' in patch:
        post.tags = _validate_tags(patch['tags'])
        changed.append('tags')

    if 'font_settings' in patch:
        font_settings = dict(post.font_settings or default_font_settings())
        font_settings.update(_validate_font_settings(patch['font_settings']))
        post.font_settings = font_settings
        changed.append('font_settings')

    if 'is_downloadable' in patch:
        post.is_downloadable = bool(patch['is_downloadable'])
        changed.append('is_downloadable')

    for name in ('description', 'excerpt', 'featured_image', 'image_url'):
        if name in patch:
            setattr(post, name, _text(patch, name))
            changed.append(name)

    return changed


def update_post(post_id: int, caller: Caller, patch: Dict[str, Any]) -> Post:
    """
    Apply a partial update.

    Only keys present in `patch` are touched. Authors may edit only their
    own posts; admins and super admins may edit any.

    Raises:
        NotFoundError, PermissionDeniedError, ValidationError, ConflictError
    """
    post = get_post(post_id)
    authorize(caller, Profile.Role.AUTHOR, owner_id=post.author_id)

    unknown = set(patch) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown fields: {', '.join(sorted(unknown))}",
            fields=sorted(unknown)
        )

    previous_status = post.status
    changed = _apply_patch(post, patch)
    if not changed:
        return post

    try:
        with transaction.atomic():
            post.save(update_fields=changed + ['updated_at'])
    except IntegrityError as exc:
        raise _translate_slug_race(exc, post.slug, exclude_pk=post.pk)

    if previous_status != post.status:
        logger.info(f"Post {post.pk} moved {previous_status} -> {post.status} by user {caller.user_id}")
    return post


def delete_post(post_id: int, caller: Caller) -> None:
    """
    Delete a post and every comment attached to it.

    Sequential and best-effort: comments go first, then the post. A failure
    after the comments are gone is reported, not rolled back.
    """
    post = get_post(post_id)
    authorize(caller, Profile.Role.AUTHOR, owner_id=post.author_id)

    deleted_comments, _ = Comment.objects.filter(post_id=post.pk).delete()
    post.delete()

    logger.info(f"Post {post_id} deleted by user {caller.user_id} with {deleted_comments} comment rows")


def check_downloadable(post: Post) -> None:
    if post.status != Post.Status.PUBLISHED:
        raise NotFoundError(f"Post {post.pk} is not published")
    if not post.is_downloadable:
        raise ForbiddenError(f"Post {post.pk} is not downloadable")


def increment_download_count(post: Post) -> int:
    """Atomic store-level increment. Returns the counter after this increment."""
    Post.objects.filter(pk=post.pk).update(download_count=F('download_count') + 1)
    post.refresh_from_db(fields=['download_count'])
    return post.download_count


def record_download(post_id: int) -> Post:
    """
    Count one download.

    Raises:
        NotFoundError: post missing or not published
        ForbiddenError: published but not downloadable
    """
    post = get_post(post_id)
    check_downloadable(post)
    increment_download_count(post)
    return post
