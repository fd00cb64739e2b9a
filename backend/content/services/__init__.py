"""
Engine services.

- posts:        Post lifecycle, derived metadata, download counting
- comments:     moderated comment threads
- submissions:  reader submissions, review and conversion into posts
- export:       watermarked EPUB packages for downloadable posts
"""
