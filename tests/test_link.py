"""Tests for the link data model and URL resolution."""

from yarl import URL

from brokenlinks.crawler.link import Link, is_link, parse_url


class TestParseUrl:
    def test_absolute_url(self):
        """An absolute URL parses on its own."""
        assert parse_url('http://example.com/a') == URL('http://example.com/a')

    def test_relative_url_without_base(self):
        """A relative URL without a base is not a URL."""
        assert parse_url('/path/to/page.html') is None

    def test_relative_url_with_base(self):
        """Relative references resolve against the base."""
        base = URL('http://example.com/dir/page.html')
        assert parse_url('other.html', base) == URL('http://example.com/dir/other.html')
        assert parse_url('../up.html', base) == URL('http://example.com/up.html')
        assert parse_url('//cdn.example.com/x.js', base) == URL('http://cdn.example.com/x.js')

    def test_http_without_host(self):
        """HTTP URLs need a host."""
        assert parse_url('http://') is None

    def test_none(self):
        assert parse_url(None) is None

    def test_accepts_url_objects(self):
        """Pre-parsed URLs are accepted for both arguments."""
        url = parse_url(URL('page.html'), URL('https://example.com/'))
        assert url == URL('https://example.com/page.html')


class TestLinkResolve:
    def test_create_is_empty(self):
        """A new link has every nullable field unset."""
        link = Link.create()
        assert link.url.original is None
        assert link.url.rebased is None
        assert link.broken is None
        assert link.excluded is None
        assert link.http.response is None

    def test_resolve_relative(self):
        """Resolved and rebased agree when there is no <base>."""
        link = Link.create().resolve('page.html', 'http://example.com/dir/')

        assert link.url.original == 'page.html'
        assert link.url.resolved == URL('http://example.com/dir/page.html')
        assert link.url.rebased == link.url.resolved
        assert link.base.resolved == URL('http://example.com/dir/')
        assert link.base.rebased == link.base.resolved

    def test_resolve_with_html_base(self):
        """A document <base> changes the rebased URL only."""
        link = Link.create()
        link.html.base = '/other/'
        link.resolve('page.html', 'http://example.com/dir/')

        assert link.url.resolved == URL('http://example.com/dir/page.html')
        assert link.url.rebased == URL('http://example.com/other/page.html')
        assert link.base.rebased == URL('http://example.com/other/')

    def test_internal_and_same_page(self):
        """Locality compares scheme, host and port; same page also compares path and query."""
        page = 'http://example.com/dir/page.html?q=1'

        same = Link.create().resolve('#section', page)
        assert same.internal is True
        assert same.same_page is True

        sibling = Link.create().resolve('other.html', page)
        assert sibling.internal is True
        assert sibling.same_page is False

        query = Link.create().resolve('page.html?q=2', page)
        assert query.same_page is False

        other_port = Link.create().resolve('http://example.com:8080/dir/page.html?q=1', page)
        assert other_port.internal is False

        other_scheme = Link.create().resolve('https://example.com/dir/page.html?q=1', page)
        assert other_scheme.internal is False

    def test_html_base_with_other_scheme_is_compared_to_page(self):
        """Locality is judged against the page URL, not the declared <base>."""
        link = Link.create()
        link.html.base = 'smtp://mail.example.com/'
        link.resolve('http://example.com/page.html', 'http://example.com/index.html')

        assert link.url.rebased == URL('http://example.com/page.html')
        assert link.internal is True

    def test_unparseable(self):
        """Unresolvable links have no rebased URL and are not internal."""
        link = Link.create().resolve('/relative.html')

        assert link.url.original == '/relative.html'
        assert link.url.rebased is None
        assert link.internal is False
        assert link.same_page is False

    def test_redirect_recomputes_locality(self):
        """Redirecting to another host makes a link external."""
        link = Link.create().resolve('/go', 'http://example.com/')
        assert link.internal is True

        link.redirect('http://elsewhere.example.org/landing')

        assert link.url.redirected == URL('http://elsewhere.example.org/landing')
        assert link.url.rebased == URL('http://example.com/go')
        assert link.internal is False


class TestLinkHelpers:
    def test_is_link(self):
        assert is_link(Link.create())
        assert not is_link('http://example.com/')
        assert not is_link(URL('http://example.com/'))

    def test_to_dict(self):
        """Serialization converts URLs to strings."""
        link = Link.create().resolve('/a', 'http://example.com/')
        link.broken = False

        data = link.to_dict()

        assert data['url']['rebased'] == 'http://example.com/a'
        assert data['url']['redirected'] is None
        assert data['base']['resolved'] == 'http://example.com/'
        assert data['internal'] is True
        assert data['broken'] is False
        assert data['http']['response'] is None
