"""
Inkwell URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Inkwell API Server',
        'version': '1.0',
        'endpoints': {
            'posts': '/api/posts/',
            'post': '/api/posts/<slug>/',
            'download': '/api/posts/<slug>/download/',
            'comments': '/api/comments/',
            'submissions': '/api/submissions/',
            'categories': '/api/categories/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('content.urls')),
]
