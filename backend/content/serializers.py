"""
DRF Serializers
===============

Serializers handle:
1. Shape validation of incoming data (types, email format, choices)
2. Transformation of model instances to JSON

DESIGN DECISIONS:
-----------------
1. Input serializers never save - validated_data is handed to the
   services, which own every engine rule (slugs, ownership, state)
2. Separate serializers for list vs detail views (no body in lists)
3. The public comment serializer never exposes moderation fields
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .models import Category, Comment, Post, Submission


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'name']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.get_full_name() or obj.username


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'order']
        read_only_fields = fields


class CategorySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug']
        read_only_fields = fields


# ============================================================================
# POSTS
# ============================================================================

class PostListSerializer(serializers.ModelSerializer):
    """
    Serializer for listing views.

    No body - the listing query defers `content`.
    """
    author = UserSerializer(read_only=True)
    category = CategorySummarySerializer(read_only=True)

    class Meta:
        model = Post
        fields = [
            'id',
            'title',
            'slug',
            'description',
            'excerpt',
            'category',
            'author',
            'status',
            'published_at',
            'tags',
            'read_time',
            'featured_image',
            'is_downloadable',
            'download_count',
        ]
        read_only_fields = fields


class PostDetailSerializer(PostListSerializer):
    class Meta(PostListSerializer.Meta):
        fields = PostListSerializer.Meta.fields + [
            'content',
            'image_url',
            'font_settings',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class DashboardSerializer(serializers.Serializer):
    stats = serializers.DictField(child=serializers.IntegerField())
    recent_posts = PostListSerializer(many=True)


class PostWriteSerializer(serializers.Serializer):
    """
    Shape of a create/update body.

    Every field is optional here: on update only the keys present are
    applied, on create the service enforces title/content/category.
    """
    title = serializers.CharField(required=False, allow_blank=True, max_length=300)
    description = serializers.CharField(required=False, allow_blank=True)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    excerpt = serializers.CharField(required=False, allow_blank=True)
    category = serializers.IntegerField(required=False, min_value=1)
    tags = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    status = serializers.ChoiceField(choices=Post.Status.choices, required=False)
    is_downloadable = serializers.BooleanField(required=False)
    font_settings = serializers.DictField(required=False)
    featured_image = serializers.CharField(required=False, allow_blank=True, max_length=500)
    image_url = serializers.URLField(required=False, allow_blank=True, max_length=500)


# ============================================================================
# COMMENTS
# ============================================================================

class CommentCreateSerializer(serializers.Serializer):
    post = serializers.IntegerField(min_value=1)
    author_name = serializers.CharField(max_length=120)
    author_email = serializers.EmailField(required=False, allow_blank=True)
    content = serializers.CharField()
    parent = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class CommentEchoSerializer(serializers.Serializer):
    """What the submitter sees: no approval flag, no moderation data."""
    id = serializers.IntegerField()
    author_name = serializers.CharField()
    content = serializers.CharField()
    created_at = serializers.DateTimeField()


class PublicReplySerializer(serializers.ModelSerializer):
    class Meta:
        model = Comment
        fields = ['id', 'author_name', 'content', 'created_at']
        read_only_fields = fields


class PublicCommentSerializer(serializers.ModelSerializer):
    """
    Top-level comment with its approved replies.

    `approved_replies` is attached by list_public_comments() through a
    filtered Prefetch.
    """
    replies = PublicReplySerializer(source='approved_replies', many=True, read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'author_name', 'content', 'created_at', 'replies']
        read_only_fields = fields


class CommentModerationSerializer(serializers.ModelSerializer):
    """Full comment for moderators."""
    post_title = serializers.CharField(source='post.title', read_only=True)
    post_slug = serializers.CharField(source='post.slug', read_only=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'post',
            'post_title',
            'post_slug',
            'author_name',
            'author_email',
            'user',
            'content',
            'is_approved',
            'parent',
            'created_at',
        ]
        read_only_fields = fields


class CommentApprovalSerializer(serializers.Serializer):
    is_approved = serializers.BooleanField()


# ============================================================================
# SUBMISSIONS
# ============================================================================

class SubmissionCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=300)
    content = serializers.CharField(trim_whitespace=False)
    author_name = serializers.CharField(max_length=120)
    author_email = serializers.EmailField()
    category = serializers.ChoiceField(choices=Submission.Genre.choices)


class SubmissionReceiptSerializer(serializers.ModelSerializer):
    class Meta:
        model = Submission
        fields = ['id', 'title', 'author_name', 'category', 'submitted_at']
        read_only_fields = fields


class SubmissionSerializer(serializers.ModelSerializer):
    reviewed_by = UserSerializer(read_only=True)

    class Meta:
        model = Submission
        fields = [
            'id',
            'title',
            'content',
            'author_name',
            'author_email',
            'category',
            'status',
            'submitted_at',
            'reviewed_by',
            'reviewed_at',
            'notes',
            'converted_post',
        ]
        read_only_fields = fields


class SubmissionReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        Submission.Status.APPROVED,
        Submission.Status.REJECTED,
    ])
    notes = serializers.CharField(required=False, allow_blank=True)


class SubmissionConvertSerializer(serializers.Serializer):
    category_id = serializers.IntegerField(min_value=1)
    tags = serializers.ListField(child=serializers.CharField(), required=False)
    is_downloadable = serializers.BooleanField(required=False, default=False)
