"""
Data Models for Inkwell
=======================

Design Philosophy:
------------------
1. Comments use the Adjacency List pattern (parent FK)
   - A parent's "reply list" is the set of rows whose parent_id points at it
   - Appending a reply is a single INSERT of the child row, so concurrent
     replies to the same parent can never overwrite each other
   - Ordering of the reply list comes from created_at, then id

2. Post slugs are guarded by a UNIQUE index
   - The service pre-checks for a friendly error
   - The index is the real guard when two editors race for the same slug

3. download_count is only ever touched with F() expressions
   - UPDATE ... SET download_count = download_count + 1
   - No read-modify-write in Python

4. Submission keeps a converted_post reference
   - Marks the second step of the submission -> post conversion
   - Lets the pipeline refuse a repeat conversion

Indexes Strategy:
-----------------
- post.status + post.published_at: public listing, newest first
- comment.post + comment.is_approved + comment.created_at: public threads
- comment.parent + comment.created_at: reply lists
- submission.status + submission.submitted_at: moderation queue
"""

from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone


def default_font_settings():
    return {
        'font_family': 'Spectral, serif',
        'font_size': 16,
        'line_height': 1.6,
    }


class Category(models.Model):
    """
    A fixed classification for posts.

    Administered outside the engine - posts only need it to exist.
    """
    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=120, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order', 'name']
        verbose_name_plural = 'categories'

    def __str__(self):
        return self.name


class Profile(models.Model):
    """
    Role tier for a registered user.

    The authentication gate resolves the user; the role decides what the
    user may do with content they do not own.
    """

    class Role(models.TextChoices):
        AUTHOR = 'author', 'Author'
        ADMIN = 'admin', 'Admin'
        SUPER_ADMIN = 'super_admin', 'Super Admin'

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.AUTHOR
    )
    bio = models.TextField(blank=True)

    def __str__(self):
        return f"{self.user.username} ({self.role})"


class Post(models.Model):
    """
    A unit of published writing.

    Lifecycle: draft -> published -> archived (any later edit may move it).
    Derived fields (slug, read_time, published_at) are maintained by
    content.services.posts, never by save() hooks.
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        PUBLISHED = 'published', 'Published'
        ARCHIVED = 'archived', 'Archived'

    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=320, unique=True)
    description = models.TextField(blank=True)
    content = models.TextField()
    excerpt = models.TextField(blank=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name='posts'
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT
    )
    # Set once, on the first transition into published
    published_at = models.DateTimeField(null=True, blank=True)
    featured_image = models.CharField(max_length=500, blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    # Ordered, duplicates permitted
    tags = models.JSONField(default=list, blank=True)
    read_time = models.PositiveIntegerField(default=0)
    font_settings = models.JSONField(default=default_font_settings, blank=True)
    is_downloadable = models.BooleanField(default=False)
    download_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-published_at'], name='content_pos_status_3c1a2e_idx'),
            models.Index(fields=['author', '-created_at'], name='content_pos_author__8d0f4b_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} ({self.status})"

    @property
    def is_published(self):
        return self.status == self.Status.PUBLISHED


class Comment(models.Model):
    """
    Public annotation on a post, moderated before it is visible.

    Threads are one level deep in practice: top-level comments carry
    replies, replies are not expected to carry their own.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author_name = models.CharField(max_length=120)
    author_email = models.EmailField(blank=True)
    # Set when the commenter is a registered user
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='comments'
    )
    content = models.TextField()
    is_approved = models.BooleanField(default=False)
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
        db_index=True
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['post', 'is_approved', 'created_at'], name='content_com_post_id_5e7b91_idx'),
            models.Index(fields=['parent', 'created_at'], name='content_com_parent__a4c2d0_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author_name} on {self.post_id}"


class Submission(models.Model):
    """
    A reader-contributed piece awaiting editorial review.

    pending -> approved | rejected, reviewed by a moderator. An approved
    submission may be converted into a draft Post exactly once.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    class Genre(models.TextChoices):
        SHORT_STORIES = 'short-stories', 'Short Stories'
        PERSONAL_ESSAYS = 'personal-essays', 'Personal Essays'
        THINK_PIECES = 'think-pieces', 'Think Pieces'
        ARTICLES = 'articles', 'Articles'
        NON_FICTION = 'non-fiction', 'Non-Fiction'

    title = models.CharField(max_length=300)
    content = models.TextField()
    author_name = models.CharField(max_length=120)
    author_email = models.EmailField()
    category = models.CharField(max_length=20, choices=Genre.choices)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING
    )
    submitted_at = models.DateTimeField(default=timezone.now)
    reviewed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_submissions'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    converted_post = models.ForeignKey(
        Post,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='source_submissions'
    )

    class Meta:
        ordering = ['-submitted_at']
        indexes = [
            models.Index(fields=['status', '-submitted_at'], name='content_sub_status_7f9e13_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} by {self.author_name} ({self.status})"


# ============================================================================
# ENGINE CONSTANTS
# ============================================================================
WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200
EXCERPT_SUFFIX = '...'
