"""
Export Coordinator
==================

Turns a published, downloadable Post into an EPUB download.

PIPELINE:
---------
1. Same preconditions as record_download (published AND downloadable)
2. build_export_package(): watermark above and below the body, plus the
   title/author pair - this is the whole contract with the packager
3. render_epub(): EbookLib builds the container
4. Count the download

The counter moves when the package is handed over, not when the client
confirms receipt. A dropped connection still counts.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils.html import escape
from ebooklib import epub

from ..exceptions import NotFoundError
from ..models import Post
from .posts import check_downloadable, increment_download_count

logger = logging.getLogger(__name__)

EPUB_CONTENT_TYPE = 'application/epub+zip'

EPUB_CSS = """
body {
  font-family: 'Spectral', Georgia, serif;
  line-height: 1.6;
  margin: 20px;
}
h1, h2, h3 {
  color: #333;
}
p {
  margin-bottom: 1em;
}
.watermark {
  opacity: 0.5;
  font-size: 12px;
  color: #999;
}
"""


@dataclass(frozen=True)
class ExportPackage:
    """Input handed to the packaging library."""
    title: str
    author: str
    html_content: str


@dataclass(frozen=True)
class ExportedDocument:
    filename: str
    content_type: str
    payload: bytes


def author_display_name(user) -> str:
    return user.get_full_name() or user.username


def watermark_content(content: str, watermark: str) -> str:
    mark = escape(watermark)
    return (
        f'<div class="watermark" style="text-align: right;">{mark}</div>\n'
        f'{content}\n'
        f'<div class="watermark" style="text-align: center; margin-top: 50px;">{mark}</div>'
    )


def build_export_package(post: Post, watermark: Optional[str] = None) -> ExportPackage:
    if watermark is None:
        watermark = settings.WATERMARK_TEXT
    return ExportPackage(
        title=post.title,
        author=author_display_name(post.author),
        html_content=watermark_content(post.content, watermark),
    )


def render_epub(package: ExportPackage, identifier: str) -> bytes:
    """Build the EPUB container in memory and return its bytes."""
    book = epub.EpubBook()
    book.set_identifier(identifier)
    book.set_title(package.title)
    book.set_language('en')
    book.add_author(package.author)
    book.add_metadata('DC', 'publisher', settings.EPUB_PUBLISHER)

    style = epub.EpubItem(
        uid='style',
        file_name='style/main.css',
        media_type='text/css',
        content=EPUB_CSS
    )
    book.add_item(style)

    chapter = epub.EpubHtml(title=package.title, file_name='content.xhtml', lang='en')
    chapter.content = f'<h1>{escape(package.title)}</h1>\n{package.html_content}'
    chapter.add_item(style)
    book.add_item(chapter)

    book.toc = [chapter]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ['nav', chapter]

    buffer = io.BytesIO()
    epub.write_epub(buffer, book, {})
    return buffer.getvalue()


def export_post(slug: str, watermark: Optional[str] = None) -> ExportedDocument:
    """
    Package a post for download and count the download.

    Raises:
        NotFoundError: no post with this slug, or not published
        ForbiddenError: published but not downloadable
    """
    post = Post.objects.select_related('author').filter(slug=slug).first()
    if post is None:
        raise NotFoundError(f"Post '{slug}' does not exist")
    check_downloadable(post)

    package = build_export_package(post, watermark)
    payload = render_epub(package, identifier=f'inkwell-post-{post.pk}')
    count = increment_download_count(post)

    logger.info(f"Post {post.pk} exported ({len(payload)} bytes, download #{count})")
    return ExportedDocument(
        filename=f'{post.slug}.epub',
        content_type=EPUB_CONTENT_TYPE,
        payload=payload,
    )
