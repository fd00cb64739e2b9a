"""
Django Admin Configuration for Content Models
"""
from django.contrib import admin
from .models import Category, Comment, Post, Profile, Submission


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'is_active', 'order']
    list_filter = ['is_active']
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email']


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'author', 'status', 'published_at', 'download_count', 'created_at']
    list_filter = ['status', 'is_downloadable', 'category']
    search_fields = ['title', 'author__username']
    # Derived by the post service - editing them here would bypass its rules
    readonly_fields = ['slug', 'read_time', 'published_at', 'download_count', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        # New posts go through create_post so slug and read time are derived
        return False


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'author_name', 'parent', 'is_approved', 'created_at']
    list_filter = ['is_approved', 'created_at']
    search_fields = ['content', 'author_name', 'author_email']
    readonly_fields = ['post', 'parent', 'created_at', 'updated_at']


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ['title', 'author_name', 'category', 'status', 'submitted_at', 'reviewed_by']
    list_filter = ['status', 'category']
    search_fields = ['title', 'author_name', 'author_email']
    readonly_fields = ['submitted_at', 'reviewed_by', 'reviewed_at', 'converted_post']

    def has_add_permission(self, request):
        # Submissions only arrive through the public endpoint
        return False
