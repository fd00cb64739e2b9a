"""
DRF Views
=========

Thin request/response glue: validate the body shape, resolve the caller,
call one service function, serialize the result. Engine errors are raised
straight through and turned into responses by
content.exceptions.custom_exception_handler.

AUTHENTICATION NOTE:
--------------------
The bearer-token gate lives outside this service. Views receive
request.user already resolved; the role comes from the user's Profile
(see content.permissions.caller_for).
"""

from django.http import HttpResponse
from rest_framework import generics, permissions, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Profile
from .permissions import IsAuthorOrAbove, IsModerator, authorize, caller_for
from .queries import (
    get_active_categories,
    get_all_posts,
    get_dashboard_stats,
    get_posts_by_author,
    get_published_post,
    get_published_posts,
    get_submissions,
)
from .serializers import (
    CategorySerializer,
    CommentApprovalSerializer,
    CommentCreateSerializer,
    CommentEchoSerializer,
    CommentModerationSerializer,
    DashboardSerializer,
    PostDetailSerializer,
    PostListSerializer,
    PostWriteSerializer,
    PublicCommentSerializer,
    SubmissionConvertSerializer,
    SubmissionCreateSerializer,
    SubmissionReceiptSerializer,
    SubmissionReviewSerializer,
    SubmissionSerializer,
)
from .services import comments, export, posts, submissions


class ContentPagination(PageNumberPagination):
    """?page=2&limit=20 - offset pagination, the admin UI jumps between pages."""
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 50


class ModerationPagination(ContentPagination):
    page_size = 20
    max_page_size = 100


def _optional_int(value):
    try:
        return int(value) if value not in (None, '') else None
    except (TypeError, ValueError):
        return None


# ============================================================================
# POSTS
# ============================================================================

class PostListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/posts/   published posts (?category=<slug>&author=<id>)
    POST /api/posts/   create a post (authors and above)
    """
    serializer_class = PostListSerializer
    pagination_class = ContentPagination

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthorOrAbove()]
        return [permissions.AllowAny()]

    def get_queryset(self):
        return get_published_posts(
            category_slug=self.request.query_params.get('category'),
            author_id=_optional_int(self.request.query_params.get('author')),
        )

    def create(self, request, *args, **kwargs):
        serializer = PostWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        post = posts.create_post(caller_for(request.user), serializer.validated_data)
        return Response(PostDetailSerializer(post).data, status=status.HTTP_201_CREATED)


class MyPostsView(generics.ListAPIView):
    """GET /api/me/posts/ - every post the caller owns, any status."""
    serializer_class = PostListSerializer
    permission_classes = [IsAuthorOrAbove]
    pagination_class = ContentPagination

    def get_queryset(self):
        return get_posts_by_author(self.request.user.id).select_related('author')


class PostDetailView(APIView):
    """GET /api/posts/<slug>/ - a single published post."""
    permission_classes = [permissions.AllowAny]

    def get(self, request, slug):
        post = get_published_post(slug)
        return Response(PostDetailSerializer(post).data)


class PostManageView(APIView):
    """
    PUT/PATCH /api/posts/manage/<id>/   partial update
    DELETE    /api/posts/manage/<id>/   delete with its comments

    Authors may only touch their own posts - enforced by the service.
    """
    permission_classes = [IsAuthorOrAbove]

    def get(self, request, post_id):
        post = posts.get_post(post_id)
        authorize(caller_for(request.user), Profile.Role.AUTHOR, owner_id=post.author_id)
        return Response(PostDetailSerializer(post).data)

    def patch(self, request, post_id):
        serializer = PostWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        post = posts.update_post(post_id, caller_for(request.user), serializer.validated_data)
        return Response(PostDetailSerializer(post).data)

    put = patch

    def delete(self, request, post_id):
        posts.delete_post(post_id, caller_for(request.user))
        return Response({'message': 'Post deleted successfully'})


class PostDownloadView(APIView):
    """GET /api/posts/<slug>/download/ - watermarked EPUB."""
    permission_classes = [permissions.AllowAny]

    def get(self, request, slug):
        document = export.export_post(slug)

        response = HttpResponse(document.payload, content_type=document.content_type)
        response['Content-Disposition'] = f'attachment; filename="{document.filename}"'
        response['Content-Length'] = str(len(document.payload))
        return response


# ============================================================================
# COMMENTS
# ============================================================================

class CommentListCreateView(APIView):
    """
    POST /api/comments/   submit a comment (anyone)
    GET  /api/comments/   all comments for moderators (?status=approved|pending&post=<id>)
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [permissions.AllowAny()]
        return [IsModerator()]

    def post(self, request):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user_id = request.user.id if request.user.is_authenticated else None
        echo = comments.submit_comment(
            post_id=data['post'],
            author_name=data['author_name'],
            content=data['content'],
            author_email=data.get('author_email'),
            parent_id=data.get('parent'),
            user_id=user_id,
        )
        return Response(
            {
                'message': 'Comment submitted for review',
                'comment': CommentEchoSerializer(echo).data,
            },
            status=status.HTTP_201_CREATED
        )

    def get(self, request):
        queryset = comments.list_comments(
            status=request.query_params.get('status') or None,
            post_id=_optional_int(request.query_params.get('post')),
        )
        paginator = ModerationPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(CommentModerationSerializer(page, many=True).data)


class PendingCommentsView(generics.ListAPIView):
    """GET /api/comments/pending/ - the moderation queue."""
    serializer_class = CommentModerationSerializer
    permission_classes = [IsModerator]
    pagination_class = ModerationPagination

    def get_queryset(self):
        return comments.list_comments(status='pending')


class CommentStatsView(APIView):
    """GET /api/comments/stats/"""
    permission_classes = [IsModerator]

    def get(self, request):
        return Response(comments.comment_stats())


class PostCommentsView(APIView):
    """GET /api/posts/<post_id>/comments/ - the public, approved thread."""
    permission_classes = [permissions.AllowAny]

    def get(self, request, post_id):
        thread = comments.list_public_comments(post_id)
        return Response(PublicCommentSerializer(thread, many=True).data)


class CommentApproveView(APIView):
    """PUT /api/comments/<id>/approve/  {"is_approved": true|false}"""
    permission_classes = [IsModerator]

    def put(self, request, comment_id):
        serializer = CommentApprovalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        approve = serializer.validated_data['is_approved']

        comment = comments.moderate_comment(comment_id, approve)
        return Response({
            'message': f"Comment {'approved' if approve else 'rejected'}",
            'comment': CommentModerationSerializer(comment).data,
        })


class CommentDeleteView(APIView):
    """DELETE /api/comments/<id>/ - removes the comment and its replies."""
    permission_classes = [IsModerator]

    def delete(self, request, comment_id):
        comments.remove_comment(comment_id)
        return Response({'message': 'Comment deleted successfully'})


# ============================================================================
# SUBMISSIONS
# ============================================================================

class SubmissionListCreateView(APIView):
    """
    POST /api/submissions/   submit a piece (anyone)
    GET  /api/submissions/   review queue (?status=&category=)
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [permissions.AllowAny()]
        return [IsModerator()]

    def post(self, request):
        serializer = SubmissionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = submissions.create_submission(serializer.validated_data)
        return Response(
            {
                'message': 'Submission received successfully! We will review it and get back to you.',
                'submission': SubmissionReceiptSerializer(submission).data,
            },
            status=status.HTTP_201_CREATED
        )

    def get(self, request):
        queryset = get_submissions(
            status=request.query_params.get('status'),
            category=request.query_params.get('category'),
        )
        paginator = ModerationPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(SubmissionSerializer(page, many=True).data)


class SubmissionDetailView(APIView):
    """GET /api/submissions/<id>/"""
    permission_classes = [IsModerator]

    def get(self, request, submission_id):
        submission = submissions.get_submission(submission_id)
        return Response(SubmissionSerializer(submission).data)


class SubmissionReviewView(APIView):
    """PUT /api/submissions/<id>/review/  {"status": "approved"|"rejected", "notes": "..."}"""
    permission_classes = [IsModerator]

    def put(self, request, submission_id):
        serializer = SubmissionReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        submission = submissions.review_submission(
            submission_id,
            caller_for(request.user),
            data['status'],
            notes=data.get('notes'),
        )
        return Response({
            'message': f"Submission {submission.status}",
            'submission': SubmissionSerializer(submission).data,
        })


class SubmissionConvertView(APIView):
    """POST /api/submissions/<id>/convert-to-post/"""
    permission_classes = [IsModerator]

    def post(self, request, submission_id):
        serializer = SubmissionConvertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        post = submissions.convert_submission(
            submission_id,
            caller_for(request.user),
            category_id=data['category_id'],
            tags=data.get('tags'),
            is_downloadable=data['is_downloadable'],
        )
        return Response({
            'message': 'Submission converted to post successfully',
            'post': PostDetailSerializer(post).data,
        }, status=status.HTTP_201_CREATED)


# ============================================================================
# MODERATOR VIEWS
# ============================================================================

class AdminPostListView(generics.ListAPIView):
    """GET /api/admin/posts/ - every post in any status (?status=&author=<id>)."""
    serializer_class = PostListSerializer
    permission_classes = [IsModerator]
    pagination_class = ModerationPagination

    def get_queryset(self):
        return get_all_posts(
            status=self.request.query_params.get('status'),
            author_id=_optional_int(self.request.query_params.get('author')),
        )


class DashboardView(APIView):
    """GET /api/admin/dashboard/"""
    permission_classes = [IsModerator]

    def get(self, request):
        return Response(DashboardSerializer(get_dashboard_stats()).data)


# ============================================================================
# CATEGORIES
# ============================================================================

class CategoryListView(generics.ListAPIView):
    """GET /api/categories/ - active categories in display order."""
    serializer_class = CategorySerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def get_queryset(self):
        return get_active_categories()
