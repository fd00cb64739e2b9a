"""
Tests for Inkwell

Focus areas:
1. Derived post metadata (slug, read time, publish timestamp)
2. Ownership rules and role tiers
3. Comment threads: reply lists, approval gate, deletion cascade
4. Submission review and the conversion saga
5. Download counting and EPUB export
6. Moderator listing and dashboard counts
"""

from io import StringIO
from smtplib import SMTPException
from unittest.mock import patch

from django.contrib.admin import site
from django.contrib.auth.models import User
from django.core import mail
from django.core.management import CommandError, call_command
from django.db import DatabaseError, connection
from django.test import RequestFactory, TestCase, TransactionTestCase
from django.test.utils import CaptureQueriesContext
from rest_framework.test import APIClient

from .derive import derive_metadata, derive_slug, estimate_read_time, make_excerpt
from .exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PartialConversionError,
    PermissionDeniedError,
    StateError,
    ValidationError,
)
from .models import Category, Comment, Post, Profile, Submission
from .permissions import Caller, authorize, caller_for
from .queries import get_all_posts, get_dashboard_stats
from .services.comments import (
    comment_stats,
    list_comments,
    list_public_comments,
    moderate_comment,
    remove_comment,
    reply_ids,
    submit_comment,
)
from .services.export import build_export_package, export_post
from .services.posts import create_post, delete_post, record_download, update_post
from .services.submissions import convert_submission, create_submission, review_submission


def make_user(username, role=Profile.Role.AUTHOR, **extra):
    user = User.objects.create_user(username, f'{username}@test.com', 'pass', **extra)
    if role is not None:
        Profile.objects.create(user=user, role=role)
    return user


def words(count):
    return ' '.join(['word'] * count)


class ContentFixtureMixin:
    """Users in every tier and one category."""

    def setUp(self):
        self.author = make_user('author')
        self.other_author = make_user('other')
        self.admin = make_user('admin', Profile.Role.ADMIN)
        self.category = Category.objects.create(name='Essays', slug='essays')

        self.author_caller = caller_for(self.author)
        self.other_caller = caller_for(self.other_author)
        self.admin_caller = caller_for(self.admin)

    def make_post(self, title='A Post', caller=None, **fields):
        fields.setdefault('content', words(10))
        fields.setdefault('category', self.category.id)
        return create_post(caller or self.author_caller, {'title': title, **fields})


class DeriverTestCase(TestCase):

    def test_slug_scenario(self):
        self.assertEqual(derive_slug('Hello, World! 2024'), 'hello-world-2024')

    def test_slug_only_lowercase_alnum_and_single_hyphens(self):
        titles = [
            '  Leading and trailing  ',
            '--Dashes--everywhere--',
            'Ünïcödé & Sýmbols!!!',
            'Tabs\tand\nnewlines',
            'ALL CAPS 123',
            'a',
        ]
        for title in titles:
            slug = derive_slug(title)
            self.assertRegex(slug, r'^[a-z0-9]+(-[a-z0-9]+)*$', title)

    def test_read_time_rounds_up(self):
        self.assertEqual(estimate_read_time(words(400)), 2)
        self.assertEqual(estimate_read_time(words(401)), 3)
        self.assertEqual(estimate_read_time('word'), 1)

    def test_read_time_counts_whitespace_runs_once(self):
        self.assertEqual(estimate_read_time('one   two\n\nthree\t four'), 1)
        self.assertEqual(estimate_read_time(''), 0)
        self.assertEqual(estimate_read_time('   '), 0)

    def test_excerpt_truncates_with_ellipsis(self):
        excerpt = make_excerpt('x' * 500)
        self.assertEqual(excerpt, 'x' * 200 + '...')

    def test_metadata_pairs_slug_and_read_time(self):
        self.assertEqual(derive_metadata('Hello, World! 2024', words(400)), ('hello-world-2024', 2))


class PostLifecycleTestCase(ContentFixtureMixin, TestCase):
    """
    CRITICAL: slug stability and the set-once publish timestamp.
    """

    def test_create_defaults_to_draft_with_derived_fields(self):
        post = self.make_post('Hello, World! 2024', content=words(400))

        self.assertEqual(post.status, Post.Status.DRAFT)
        self.assertEqual(post.slug, 'hello-world-2024')
        self.assertEqual(post.read_time, 2)
        self.assertIsNone(post.published_at)
        self.assertEqual(post.author, self.author)
        self.assertEqual(post.download_count, 0)
        self.assertEqual(post.font_settings['font_family'], 'Spectral, serif')

    def test_create_published_stamps_publish_time(self):
        post = self.make_post(status=Post.Status.PUBLISHED)
        self.assertIsNotNone(post.published_at)

    def test_create_requires_title_and_content(self):
        with self.assertRaises(ValidationError):
            self.make_post(title='   ')
        with self.assertRaises(ValidationError):
            self.make_post(content='')

    def test_create_requires_existing_category(self):
        with self.assertRaises(ValidationError):
            self.make_post(category=9999)

    def test_create_rejects_taken_slug(self):
        self.make_post('Same Title')
        with self.assertRaises(ConflictError):
            self.make_post('same  title!', caller=self.other_caller)
        self.assertEqual(Post.objects.count(), 1)

    def test_lost_slug_race_becomes_conflict(self):
        """The unique index catches a writer that slipped past the pre-check."""
        self.make_post('Raced')
        with patch('content.services.posts._slug_for', return_value='raced'):
            with self.assertRaises(ConflictError):
                self.make_post('Raced', caller=self.other_caller)
        self.assertEqual(Post.objects.filter(slug='raced').count(), 1)

    def test_create_requires_writer_role(self):
        reader = make_user('reader', role=None)
        with self.assertRaises(PermissionDeniedError):
            self.make_post(caller=caller_for(reader))

    def test_tags_keep_order_and_duplicates(self):
        post = self.make_post(tags=['b', 'a', 'b'])
        post.refresh_from_db()
        self.assertEqual(post.tags, ['b', 'a', 'b'])

    def test_title_change_rederives_slug(self):
        post = self.make_post('Old Title')
        post = update_post(post.id, self.author_caller, {'title': 'New Title'})
        self.assertEqual(post.slug, 'new-title')

    def test_unrelated_edit_keeps_slug(self):
        post = self.make_post('Stable Title')
        update_post(post.id, self.author_caller, {'description': 'changed'})
        post.refresh_from_db()
        self.assertEqual(post.slug, 'stable-title')

    def test_resaving_own_title_is_not_a_conflict(self):
        post = self.make_post('Mine')
        post = update_post(post.id, self.author_caller, {'title': 'MINE'})
        self.assertEqual(post.slug, 'mine')

    def test_title_change_to_taken_slug_conflicts(self):
        self.make_post('Taken')
        post = self.make_post('Free')
        with self.assertRaises(ConflictError):
            update_post(post.id, self.author_caller, {'title': 'Taken'})
        post.refresh_from_db()
        self.assertEqual(post.slug, 'free')

    def test_content_change_recomputes_read_time(self):
        post = self.make_post(content=words(10))
        post = update_post(post.id, self.author_caller, {'content': words(450)})
        self.assertEqual(post.read_time, 3)

    def test_published_at_is_set_once(self):
        post = self.make_post()
        post = update_post(post.id, self.author_caller, {'status': Post.Status.PUBLISHED})
        first_published = post.published_at
        self.assertIsNotNone(first_published)

        for patch_body in (
            {'status': Post.Status.ARCHIVED},
            {'status': Post.Status.PUBLISHED},
            {'title': 'Renamed'},
            {'status': Post.Status.DRAFT},
            {'status': Post.Status.PUBLISHED},
        ):
            update_post(post.id, self.author_caller, patch_body)
            post.refresh_from_db()
            self.assertEqual(post.published_at, first_published)

    def test_author_cannot_edit_someone_elses_post(self):
        post = self.make_post(caller=self.other_caller)
        with self.assertRaises(PermissionDeniedError):
            update_post(post.id, self.author_caller, {'title': 'Hijacked'})

    def test_admin_can_edit_any_post(self):
        post = self.make_post(caller=self.other_caller)
        post = update_post(post.id, self.admin_caller, {'title': 'Edited By Admin'})
        self.assertEqual(post.title, 'Edited By Admin')
        self.assertEqual(post.author, self.other_author)

    def test_update_missing_post(self):
        with self.assertRaises(NotFoundError):
            update_post(9999, self.admin_caller, {'title': 'x'})

    def test_non_string_text_is_a_validation_error(self):
        post = self.make_post()
        for patch_body in ({'title': 123}, {'content': ['words']}, {'description': 5}):
            with self.assertRaises(ValidationError):
                update_post(post.id, self.author_caller, patch_body)
        with self.assertRaises(ValidationError):
            self.make_post(title=42)

    def test_font_settings_must_be_a_mapping(self):
        post = self.make_post()
        with self.assertRaises(ValidationError):
            update_post(post.id, self.author_caller, {'font_settings': ['x']})
        with self.assertRaises(ValidationError):
            self.make_post('Fonts', font_settings='serif')

        post = update_post(post.id, self.author_caller, {'font_settings': {'font_size': 18}})
        self.assertEqual(post.font_settings['font_size'], 18)
        self.assertEqual(post.font_settings['font_family'], 'Spectral, serif')

    def test_update_rejects_derived_fields(self):
        post = self.make_post()
        with self.assertRaises(ValidationError):
            update_post(post.id, self.author_caller, {'slug': 'custom'})

    def test_delete_cascades_comments(self):
        post = self.make_post()
        keep = self.make_post('Other Post')
        parent = submit_comment(post.id, 'Ann', 'first')
        submit_comment(post.id, 'Bob', 'reply', parent_id=parent.id)
        submit_comment(keep.id, 'Cy', 'elsewhere')

        delete_post(post.id, self.author_caller)

        self.assertFalse(Post.objects.filter(id=post.id).exists())
        self.assertEqual(Comment.objects.filter(post_id=post.id).count(), 0)
        self.assertEqual(Comment.objects.filter(post=keep).count(), 1)

    def test_delete_follows_ownership_rule(self):
        post = self.make_post(caller=self.other_caller)
        with self.assertRaises(PermissionDeniedError):
            delete_post(post.id, self.author_caller)

        delete_post(post.id, self.admin_caller)
        self.assertFalse(Post.objects.filter(id=post.id).exists())


class DownloadCounterTestCase(ContentFixtureMixin, TransactionTestCase):
    """
    Test download counting.

    These tests verify that:
    1. Only published, downloadable posts count
    2. The counter is incremented with F(), never read-modify-write
    """

    def test_draft_cannot_be_downloaded(self):
        post = self.make_post(is_downloadable=True)
        with self.assertRaises(NotFoundError):
            record_download(post.id)

    def test_published_but_not_downloadable(self):
        post = self.make_post(status=Post.Status.PUBLISHED)
        with self.assertRaises(ForbiddenError):
            record_download(post.id)
        post.refresh_from_db()
        self.assertEqual(post.download_count, 0)

    def test_missing_post(self):
        with self.assertRaises(NotFoundError):
            record_download(9999)

    def test_two_downloads_count_twice(self):
        """
        Two readers holding the same stale row must not lose an increment.

        Both load the post before either writes; an in-Python
        `count + 1` would leave the counter at 1.
        """
        post = self.make_post(status=Post.Status.PUBLISHED, is_downloadable=True)
        stale_a = Post.objects.get(id=post.id)
        stale_b = Post.objects.get(id=post.id)

        with patch('content.services.posts.get_post', side_effect=[stale_a, stale_b]):
            record_download(post.id)
            record_download(post.id)

        post.refresh_from_db()
        self.assertEqual(post.download_count, 2)

    def test_editing_does_not_clobber_download_count(self):
        post = self.make_post(status=Post.Status.PUBLISHED, is_downloadable=True)
        record_download(post.id)
        record_download(post.id)

        update_post(post.id, self.author_caller, {'description': 'still counted'})

        post.refresh_from_db()
        self.assertEqual(post.download_count, 2)


class CommentThreadTestCase(ContentFixtureMixin, TestCase):
    """
    Test the moderated thread.

    These tests verify that:
    1. Reply lists contain each child exactly once
    2. Only approved comments are public
    3. Removal detaches and cascades
    """

    def setUp(self):
        super().setUp()
        self.post = self.make_post(status=Post.Status.PUBLISHED)
        self.other_post = self.make_post('Another')

    def approved(self, author_name, content, parent_id=None, post=None):
        echo = submit_comment((post or self.post).id, author_name, content, parent_id=parent_id)
        moderate_comment(echo.id, True)
        return echo

    def test_submit_creates_unapproved_comment(self):
        echo = submit_comment(self.post.id, 'Ann', '  Nice piece  ', author_email='ANN@Example.com')

        self.assertEqual(echo.author_name, 'Ann')
        self.assertEqual(echo.content, 'Nice piece')
        self.assertFalse(hasattr(echo, 'is_approved'))

        comment = Comment.objects.get(id=echo.id)
        self.assertFalse(comment.is_approved)
        self.assertEqual(comment.author_email, 'ann@example.com')

    def test_submit_on_missing_post(self):
        with self.assertRaises(NotFoundError):
            submit_comment(9999, 'Ann', 'hello')

    def test_parent_on_different_post_is_not_found(self):
        foreign = submit_comment(self.other_post.id, 'Ann', 'elsewhere')
        with self.assertRaises(NotFoundError):
            submit_comment(self.post.id, 'Bob', 'reply', parent_id=foreign.id)
        self.assertEqual(Comment.objects.filter(post=self.post).count(), 0)

    def test_missing_parent_is_not_found(self):
        with self.assertRaises(NotFoundError):
            submit_comment(self.post.id, 'Bob', 'reply', parent_id=9999)

    def test_blank_content_rejected(self):
        with self.assertRaises(ValidationError):
            submit_comment(self.post.id, 'Bob', '   ')

    def test_reply_appears_once_in_parent_reply_list(self):
        parent = submit_comment(self.post.id, 'Ann', 'top')
        first = submit_comment(self.post.id, 'Bob', 'reply 1', parent_id=parent.id)
        second = submit_comment(self.post.id, 'Cy', 'reply 2', parent_id=parent.id)

        ids = reply_ids(Comment.objects.get(id=parent.id))
        self.assertEqual(ids, [first.id, second.id])
        self.assertEqual(ids.count(first.id), 1)

    def test_public_list_shape_and_order(self):
        older = self.approved('Ann', 'older top')
        newer = self.approved('Bob', 'newer top')
        submit_comment(self.post.id, 'Hidden', 'pending top')

        reply_1 = self.approved('Cy', 'first reply', parent_id=older.id)
        submit_comment(self.post.id, 'Dee', 'pending reply', parent_id=older.id)
        reply_2 = self.approved('Eve', 'second reply', parent_id=older.id)

        thread = list_public_comments(self.post.id)

        self.assertEqual([c.id for c in thread], [newer.id, older.id])
        self.assertEqual([r.id for r in thread[1].approved_replies], [reply_1.id, reply_2.id])
        self.assertEqual(thread[0].approved_replies, [])

    def test_public_list_has_no_n_plus_one(self):
        """Ten threads with replies load in two queries, not eleven."""
        for i in range(10):
            top = self.approved(f'user{i}', f'top {i}')
            self.approved(f'reply{i}', f'reply {i}', parent_id=top.id)

        with CaptureQueriesContext(connection) as context:
            thread = list_public_comments(self.post.id)
            reply_count = sum(len(comment.approved_replies) for comment in thread)

        self.assertEqual(len(context), 2,
            f"Expected 2 queries, got {len(context)}. Queries: {[q['sql'][:100] for q in context]}")
        self.assertEqual(reply_count, 10)

    def test_moderation_does_not_cascade_to_replies(self):
        parent = submit_comment(self.post.id, 'Ann', 'top')
        reply = submit_comment(self.post.id, 'Bob', 'reply', parent_id=parent.id)

        moderate_comment(parent.id, True)
        self.assertFalse(Comment.objects.get(id=reply.id).is_approved)

        moderate_comment(parent.id, False)
        self.assertTrue(Comment.objects.filter(id=parent.id).exists())

    def test_moderate_missing_comment(self):
        with self.assertRaises(NotFoundError):
            moderate_comment(9999, True)

    def test_remove_reply_detaches_from_parent(self):
        parent = submit_comment(self.post.id, 'Ann', 'top')
        reply = submit_comment(self.post.id, 'Bob', 'reply', parent_id=parent.id)

        remove_comment(reply.id)

        parent_comment = Comment.objects.get(id=parent.id)
        self.assertEqual(reply_ids(parent_comment).count(reply.id), 0)

    def test_remove_top_level_deletes_whole_subtree(self):
        top = submit_comment(self.post.id, 'Ann', 'top')
        reply = submit_comment(self.post.id, 'Bob', 'reply', parent_id=top.id)
        submit_comment(self.post.id, 'Cy', 'reply to reply', parent_id=reply.id)

        remove_comment(top.id)

        self.assertEqual(Comment.objects.filter(post=self.post).count(), 0)

    def test_remove_parent_deletes_direct_replies(self):
        parent = self.approved('Ann', 'top')
        self.approved('Bob', 'reply 1', parent_id=parent.id)
        self.approved('Cy', 'reply 2', parent_id=parent.id)
        survivor = self.approved('Dee', 'unrelated top')

        remove_comment(parent.id)

        self.assertEqual(list(Comment.objects.values_list('id', flat=True)), [survivor.id])
        self.assertEqual([c.id for c in list_public_comments(self.post.id)], [survivor.id])

    def test_remove_missing_comment(self):
        with self.assertRaises(NotFoundError):
            remove_comment(9999)

    def test_moderator_listing_and_stats(self):
        self.approved('Ann', 'approved')
        submit_comment(self.post.id, 'Bob', 'pending')
        submit_comment(self.other_post.id, 'Cy', 'pending elsewhere')

        self.assertEqual(list_comments(status='pending').count(), 2)
        self.assertEqual(list_comments(status='pending', post_id=self.post.id).count(), 1)
        with self.assertRaises(ValidationError):
            list_comments(status='spam')

        stats = comment_stats()
        self.assertEqual(stats['total_comments'], 3)
        self.assertEqual(stats['approved_comments'], 1)
        self.assertEqual(stats['pending_comments'], 2)
        self.assertEqual(stats['comments_this_month'], 3)


class SubmissionPipelineTestCase(ContentFixtureMixin, TestCase):

    def submit(self, **overrides):
        fields = {
            'title': 'Reader Story',
            'content': 'Once upon a time ' * 30,
            'author_name': 'Reader',
            'author_email': 'Reader@Example.com',
            'category': Submission.Genre.SHORT_STORIES,
        }
        fields.update(overrides)
        return create_submission(fields)

    def test_create_is_pending(self):
        submission = self.submit()
        self.assertEqual(submission.status, Submission.Status.PENDING)
        self.assertEqual(submission.author_email, 'reader@example.com')
        self.assertIsNone(submission.reviewed_by)

    def test_create_validates_category_and_blanks(self):
        with self.assertRaises(ValidationError):
            self.submit(category='poetry')
        with self.assertRaises(ValidationError):
            self.submit(title='  ')

    def test_confirmation_email_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.submit()

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['reader@example.com'])
        self.assertIn('Reader Story', mail.outbox[0].subject)

    def test_email_failure_does_not_fail_submission(self):
        with patch('content.notifications.send_mail', side_effect=SMTPException('down')):
            with self.captureOnCommitCallbacks(execute=True):
                submission = self.submit()

        self.assertTrue(Submission.objects.filter(id=submission.id).exists())

    def test_review_records_reviewer(self):
        submission = self.submit()
        reviewed = review_submission(submission.id, self.admin_caller, 'approved', notes='Lovely')

        self.assertEqual(reviewed.status, Submission.Status.APPROVED)
        self.assertEqual(reviewed.reviewed_by_id, self.admin.id)
        self.assertIsNotNone(reviewed.reviewed_at)
        self.assertEqual(reviewed.notes, 'Lovely')

    def test_same_decision_review_is_idempotent(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'rejected')
        reviewed = review_submission(submission.id, self.admin_caller, 'rejected', notes='Again')
        self.assertEqual(reviewed.status, Submission.Status.REJECTED)
        self.assertEqual(reviewed.notes, 'Again')

    def test_reviewed_state_is_final(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'rejected')
        with self.assertRaises(StateError):
            review_submission(submission.id, self.admin_caller, 'approved')

    def test_review_requires_moderator(self):
        submission = self.submit()
        with self.assertRaises(PermissionDeniedError):
            review_submission(submission.id, self.author_caller, 'approved')

    def test_review_missing_submission(self):
        with self.assertRaises(NotFoundError):
            review_submission(9999, self.admin_caller, 'approved')

    def test_convert_requires_approved_state(self):
        pending = self.submit(title='Pending One')
        rejected = self.submit(title='Rejected One')
        review_submission(rejected.id, self.admin_caller, 'rejected')

        for submission in (pending, rejected):
            with self.assertRaises(StateError):
                convert_submission(submission.id, self.admin_caller, self.category.id)
        self.assertEqual(Post.objects.count(), 0)

    def test_convert_approved_creates_draft(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'approved')

        post = convert_submission(
            submission.id, self.admin_caller, self.category.id,
            tags=['fiction'], is_downloadable=True
        )

        self.assertEqual(post.status, Post.Status.DRAFT)
        self.assertEqual(post.title, submission.title)
        self.assertEqual(post.author, self.admin)
        self.assertEqual(post.excerpt, submission.content[:200] + '...')
        self.assertEqual(post.tags, ['fiction'])
        self.assertTrue(post.is_downloadable)

        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.Status.APPROVED)
        self.assertEqual(submission.converted_post, post)

    def test_convert_twice_is_rejected(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'approved')
        convert_submission(submission.id, self.admin_caller, self.category.id)

        with self.assertRaises(StateError):
            convert_submission(submission.id, self.admin_caller, self.category.id)
        self.assertEqual(Post.objects.count(), 1)

    def test_convert_with_unknown_category(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'approved')
        with self.assertRaises(ValidationError):
            convert_submission(submission.id, self.admin_caller, 9999)

    def test_convert_missing_submission(self):
        with self.assertRaises(NotFoundError):
            convert_submission(9999, self.admin_caller, self.category.id)

    def test_failed_marking_reports_partial_conversion(self):
        submission = self.submit()
        review_submission(submission.id, self.admin_caller, 'approved')

        with patch.object(Submission.objects, 'filter', side_effect=DatabaseError('lost connection')):
            with self.assertRaises(PartialConversionError) as ctx:
                convert_submission(submission.id, self.admin_caller, self.category.id)

        self.assertTrue(Post.objects.filter(id=ctx.exception.post_id).exists())
        submission.refresh_from_db()
        self.assertIsNone(submission.converted_post)


class ExportTestCase(ContentFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.author.first_name = 'Ada'
        self.author.last_name = 'Writer'
        self.author.save()
        self.post = self.make_post(
            'Exportable',
            content='<p>Body text</p>',
            status=Post.Status.PUBLISHED,
            is_downloadable=True,
        )

    def test_package_has_watermark_top_and_bottom(self):
        package = build_export_package(self.post, watermark='(c) Test Mark')

        self.assertEqual(package.title, 'Exportable')
        self.assertEqual(package.author, 'Ada Writer')
        first_mark = package.html_content.find('(c) Test Mark')
        last_mark = package.html_content.rfind('(c) Test Mark')
        body = package.html_content.find('<p>Body text</p>')
        self.assertTrue(0 <= first_mark < body < last_mark)

    def test_export_produces_epub_and_counts(self):
        document = export_post('exportable')

        self.assertEqual(document.filename, 'exportable.epub')
        self.assertEqual(document.content_type, 'application/epub+zip')
        self.assertTrue(document.payload.startswith(b'PK'))

        self.post.refresh_from_db()
        self.assertEqual(self.post.download_count, 1)

    def test_export_requires_downloadable(self):
        update_post(self.post.id, self.author_caller, {'is_downloadable': False})
        with self.assertRaises(ForbiddenError):
            export_post('exportable')

        self.post.refresh_from_db()
        self.assertEqual(self.post.download_count, 0)

    def test_export_unknown_slug(self):
        with self.assertRaises(NotFoundError):
            export_post('nope')


class AuthorizationTestCase(TestCase):

    def test_role_ladder(self):
        author = Caller(user_id=1, role=Profile.Role.AUTHOR)
        admin = Caller(user_id=2, role=Profile.Role.ADMIN)
        nobody = Caller(user_id=3, role=None)

        authorize(author, Profile.Role.AUTHOR)
        authorize(admin, Profile.Role.AUTHOR)
        with self.assertRaises(PermissionDeniedError):
            authorize(author, Profile.Role.ADMIN)
        with self.assertRaises(PermissionDeniedError):
            authorize(nobody, Profile.Role.AUTHOR)

    def test_ownership_only_binds_authors(self):
        author = Caller(user_id=1, role=Profile.Role.AUTHOR)
        admin = Caller(user_id=2, role=Profile.Role.ADMIN)

        authorize(author, Profile.Role.AUTHOR, owner_id=1)
        authorize(admin, Profile.Role.AUTHOR, owner_id=1)
        with self.assertRaises(PermissionDeniedError):
            authorize(author, Profile.Role.AUTHOR, owner_id=2)

    def test_superuser_without_profile_is_super_admin(self):
        root = User.objects.create_superuser('root', 'root@test.com', 'pass')
        self.assertEqual(caller_for(root).role, Profile.Role.SUPER_ADMIN)

        plain = User.objects.create_user('plain', 'plain@test.com', 'pass')
        self.assertIsNone(caller_for(plain).role)


class ApiTestCase(ContentFixtureMixin, TestCase):
    """End-to-end through DRF: status codes and response shapes."""

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_create_post_as_author(self):
        self.client.force_authenticate(self.author)
        response = self.client.post('/api/posts/', {
            'title': 'Hello, World! 2024',
            'content': words(400),
            'category': self.category.id,
            'tags': ['a', 'a'],
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['slug'], 'hello-world-2024')
        self.assertEqual(response.data['read_time'], 2)
        self.assertEqual(response.data['status'], 'draft')

    def test_create_post_requires_login(self):
        response = self.client.post('/api/posts/', {'title': 'x'}, format='json')
        self.assertIn(response.status_code, (401, 403))

    def test_slug_conflict_is_409(self):
        self.make_post('Dupe')
        self.client.force_authenticate(self.author)
        response = self.client.post('/api/posts/', {
            'title': 'dupe', 'content': 'text', 'category': self.category.id,
        }, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertIn('error', response.data)

    def test_editing_another_authors_post_is_403(self):
        post = self.make_post(caller=self.other_caller)
        self.client.force_authenticate(self.author)
        response = self.client.patch(f'/api/posts/manage/{post.id}/', {'title': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/posts/manage/{post.id}/', {'title': 'Fixed'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['slug'], 'fixed')

    def test_public_listing_hides_drafts(self):
        self.make_post('Draft One')
        self.make_post('Live One', status=Post.Status.PUBLISHED)

        response = self.client.get('/api/posts/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['slug'] for p in response.data['results']], ['live-one'])

        self.assertEqual(self.client.get('/api/posts/draft-one/').status_code, 404)
        self.assertEqual(self.client.get('/api/posts/live-one/').status_code, 200)

    def test_comment_echo_hides_moderation_state(self):
        post = self.make_post(status=Post.Status.PUBLISHED)
        response = self.client.post('/api/comments/', {
            'post': post.id, 'author_name': 'Ann', 'content': 'Hi',
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(set(response.data['comment']), {'id', 'author_name', 'content', 'created_at'})
        self.assertEqual(self.client.get(f'/api/posts/{post.id}/comments/').data, [])

        self.client.force_authenticate(self.admin)
        comment_id = response.data['comment']['id']
        approve = self.client.put(f'/api/comments/{comment_id}/approve/', {'is_approved': True}, format='json')
        self.assertEqual(approve.status_code, 200)

        thread = self.client.get(f'/api/posts/{post.id}/comments/').data
        self.assertEqual([c['id'] for c in thread], [comment_id])
        self.assertNotIn('is_approved', thread[0])

    def test_moderation_endpoints_require_moderator(self):
        self.client.force_authenticate(self.author)
        self.assertEqual(self.client.get('/api/comments/pending/').status_code, 403)
        self.assertEqual(self.client.get('/api/submissions/').status_code, 403)

    def test_submission_flow(self):
        response = self.client.post('/api/submissions/', {
            'title': 'My Essay',
            'content': 'Words ' * 50,
            'author_name': 'Reader',
            'author_email': 'reader@example.com',
            'category': 'personal-essays',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        submission_id = response.data['submission']['id']

        self.client.force_authenticate(self.admin)
        early = self.client.post(
            f'/api/submissions/{submission_id}/convert-to-post/',
            {'category_id': self.category.id}, format='json'
        )
        self.assertEqual(early.status_code, 409)

        review = self.client.put(
            f'/api/submissions/{submission_id}/review/',
            {'status': 'approved', 'notes': 'Yes'}, format='json'
        )
        self.assertEqual(review.status_code, 200)

        converted = self.client.post(
            f'/api/submissions/{submission_id}/convert-to-post/',
            {'category_id': self.category.id}, format='json'
        )
        self.assertEqual(converted.status_code, 201)
        self.assertEqual(converted.data['post']['status'], 'draft')

    def test_download_endpoint(self):
        self.make_post('Book', status=Post.Status.PUBLISHED, is_downloadable=True)
        self.make_post('Closed', status=Post.Status.PUBLISHED)

        response = self.client.get('/api/posts/book/download/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/epub+zip')
        self.assertIn('book.epub', response['Content-Disposition'])

        self.assertEqual(self.client.get('/api/posts/closed/download/').status_code, 403)
        self.assertEqual(self.client.get('/api/posts/missing/download/').status_code, 404)

    def test_delete_post_endpoint(self):
        post = self.make_post()
        self.client.force_authenticate(self.author)
        response = self.client.delete(f'/api/posts/manage/{post.id}/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Post.objects.filter(id=post.id).exists())


class SetupSiteCommandTestCase(TestCase):

    def test_creates_categories_without_admin(self):
        call_command('setup_site', '--skip-admin', stdout=StringIO())
        call_command('setup_site', '--skip-admin', stdout=StringIO())

        self.assertEqual(Category.objects.count(), 5)
        self.assertFalse(User.objects.exists())

    @patch.dict('os.environ', {
        'SUPER_ADMIN_EMAIL': 'root@example.com',
        'SUPER_ADMIN_PASSWORD': 'secret',
        'SUPER_ADMIN_NAME': 'Site Owner',
    })
    def test_creates_super_admin(self):
        call_command('setup_site', stdout=StringIO())

        user = User.objects.get(email='root@example.com')
        self.assertEqual(user.profile.role, Profile.Role.SUPER_ADMIN)
        self.assertEqual(user.get_full_name(), 'Site Owner')

    @patch.dict('os.environ', {'SUPER_ADMIN_EMAIL': '', 'SUPER_ADMIN_PASSWORD': ''})
    def test_missing_admin_credentials(self):
        with self.assertRaises(CommandError):
            call_command('setup_site', stdout=StringIO())


class ModeratorViewsTestCase(ContentFixtureMixin, TestCase):
    """All-status post listing and dashboard counts."""

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.draft = self.make_post('Draft', caller=self.other_caller)
        self.live = self.make_post('Live', status=Post.Status.PUBLISHED)
        self.archived = self.make_post('Old', status=Post.Status.PUBLISHED)
        update_post(self.archived.id, self.author_caller, {'status': Post.Status.ARCHIVED})

    def test_all_posts_lists_every_status_newest_first(self):
        self.assertEqual(
            [p.id for p in get_all_posts()],
            [self.archived.id, self.live.id, self.draft.id]
        )
        self.assertEqual([p.id for p in get_all_posts(status='draft')], [self.draft.id])
        self.assertEqual(
            [p.id for p in get_all_posts(author_id=self.author.id)],
            [self.archived.id, self.live.id]
        )
        with self.assertRaises(ValidationError):
            get_all_posts(status='deleted')

    def test_dashboard_counts(self):
        parent = submit_comment(self.live.id, 'Ann', 'pending')
        moderate_comment(submit_comment(self.live.id, 'Bob', 'ok', parent_id=parent.id).id, True)
        create_submission({
            'title': 'Story', 'content': 'text', 'author_name': 'Reader',
            'author_email': 'r@example.com', 'category': Submission.Genre.ARTICLES,
        })

        with CaptureQueriesContext(connection) as context:
            dashboard = get_dashboard_stats()

        self.assertEqual(dashboard['stats'], {
            'total_posts': 3,
            'published_posts': 1,
            'draft_posts': 1,
            'archived_posts': 1,
            'pending_comments': 1,
            'pending_submissions': 1,
        })
        self.assertEqual(dashboard['recent_posts'][0].id, self.archived.id)
        self.assertEqual(len(context), 4)

    def test_admin_post_listing_endpoint(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/admin/posts/', {'author': self.other_author.id})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['slug'] for p in response.data['results']], ['draft'])
        self.assertEqual(response.data['results'][0]['status'], 'draft')

    def test_dashboard_endpoint(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/admin/dashboard/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['stats']['total_posts'], 3)
        self.assertEqual(len(response.data['recent_posts']), 3)

    def test_moderator_views_require_moderator(self):
        self.client.force_authenticate(self.author)
        self.assertEqual(self.client.get('/api/admin/posts/').status_code, 403)
        self.assertEqual(self.client.get('/api/admin/dashboard/').status_code, 403)


class PostAdminTestCase(TestCase):

    def test_posts_cannot_be_added_from_admin(self):
        superuser = User.objects.create_superuser('root', 'root@test.com', 'pass')
        request = RequestFactory().get('/admin/content/post/add/')
        request.user = superuser

        self.assertFalse(site._registry[Post].has_add_permission(request))
        self.assertTrue(site._registry[Post].has_change_permission(request))
