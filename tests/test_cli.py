"""Tests for the command line application."""

import argparse
import json

import pytest

from brokenlinks.utils.config import Config
from main import LinkCheckerApp, build_config


def arguments(**overrides):
    values = dict(config=None, filter_level=None, exclude=None, exclude_external=False,
                  exclude_internal=False, get=False, user_agent=None, verbose=False)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestBuildConfig:
    def test_defaults(self):
        config = build_config(arguments())
        assert config.checker == Config().checker

    def test_overrides(self):
        config = build_config(arguments(filter_level=3, exclude=['*.pdf'], get=True, verbose=True))

        assert config.checker.filter_level == 3
        assert config.checker.excluded_keywords == ('*.pdf',)
        assert config.checker.request_method == 'get'
        assert config.logging.level == 'DEBUG'


class TestLinkCheckerApp:
    @pytest.mark.asyncio
    async def test_page_with_broken_link(self, server, capsys):
        app = LinkCheckerApp(Config())

        status = await app.run(server.url('/index.html'))

        assert status == 1
        assert app.broken_links == 1
        out = capsys.readouterr().out
        assert 'BROKEN' in out
        assert '/404.html' in out

    @pytest.mark.asyncio
    async def test_site_json_report(self, server, capsys):
        app = LinkCheckerApp(Config(), recursive=True, as_json=True)

        status = await app.run(server.url('/page2.html'))

        # page2 -> page1 -> index, which links to a missing page
        assert status == 1
        entries = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [entry['broken_reason'] for entry in entries] == ['HTTP_404']
        assert entries[0]['base']['resolved'] == server.url('/index.html')
        assert app.metrics.get_summary()['counts']['sites'] == 1

    @pytest.mark.asyncio
    async def test_verbose_json_lines(self, server, capsys):
        app = LinkCheckerApp(Config(), as_json=True, verbose=True)

        await app.run(server.url('/page2.html'))

        [line] = capsys.readouterr().out.splitlines()
        entry = json.loads(line)
        assert entry['url']['original'] == '/page1.html'
        assert entry['broken'] is False
