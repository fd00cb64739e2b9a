"""
Content App URL Configuration
"""
from django.urls import path
from .views import (
    AdminPostListView,
    CategoryListView,
    CommentApproveView,
    CommentDeleteView,
    CommentListCreateView,
    CommentStatsView,
    DashboardView,
    MyPostsView,
    PendingCommentsView,
    PostCommentsView,
    PostDetailView,
    PostDownloadView,
    PostListCreateView,
    PostManageView,
    SubmissionConvertView,
    SubmissionDetailView,
    SubmissionListCreateView,
    SubmissionReviewView,
)

urlpatterns = [
    # Posts
    path('posts/', PostListCreateView.as_view(), name='post-list'),
    path('posts/manage/<int:post_id>/', PostManageView.as_view(), name='post-manage'),
    path('posts/<int:post_id>/comments/', PostCommentsView.as_view(), name='post-comments'),
    path('posts/<slug:slug>/download/', PostDownloadView.as_view(), name='post-download'),
    path('posts/<slug:slug>/', PostDetailView.as_view(), name='post-detail'),
    path('me/posts/', MyPostsView.as_view(), name='my-posts'),

    # Comments
    path('comments/', CommentListCreateView.as_view(), name='comment-list'),
    path('comments/pending/', PendingCommentsView.as_view(), name='comment-pending'),
    path('comments/stats/', CommentStatsView.as_view(), name='comment-stats'),
    path('comments/<int:comment_id>/approve/', CommentApproveView.as_view(), name='comment-approve'),
    path('comments/<int:comment_id>/', CommentDeleteView.as_view(), name='comment-delete'),

    # Submissions
    path('submissions/', SubmissionListCreateView.as_view(), name='submission-list'),
    path('submissions/<int:submission_id>/', SubmissionDetailView.as_view(), name='submission-detail'),
    path('submissions/<int:submission_id>/review/', SubmissionReviewView.as_view(), name='submission-review'),
    path('submissions/<int:submission_id>/convert-to-post/', SubmissionConvertView.as_view(), name='submission-convert'),

    # Categories
    path('categories/', CategoryListView.as_view(), name='category-list'),

    # Moderator views
    path('admin/posts/', AdminPostListView.as_view(), name='admin-post-list'),
    path('admin/dashboard/', DashboardView.as_view(), name='admin-dashboard'),
]
