"""Unit tests for dataset download and caching (mocked HTTP)."""

import os
from unittest.mock import MagicMock, patch

import pytest
import requests

from nutrient_growth.fetch import DatasetCache, create_session, fetch_bytes, is_url

URL = "http://example.org/files/Brauer2008_DataSet1.tds"


def _mock_session(content=b"NAME\tG0.05\n", status_error=None):
    session = MagicMock(spec=requests.Session)
    response = MagicMock()
    response.content = content
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    session.get.return_value = response
    return session


class TestCreateSession:

    def test_retry_adapter_mounted(self):
        session = create_session(max_retries=5)
        adapter = session.get_adapter("https://example.org")
        assert adapter.max_retries.total == 5
        assert 503 in adapter.max_retries.status_forcelist
        assert session.headers["User-Agent"].startswith("nutrient-growth")


class TestFetchBytes:

    def test_returns_content(self):
        session = _mock_session(b"payload")
        assert fetch_bytes(URL, session=session) == b"payload"
        session.get.assert_called_once_with(URL, timeout=120)

    def test_http_error_propagates(self):
        session = _mock_session(status_error=requests.HTTPError("404 Not Found"))
        with pytest.raises(requests.HTTPError):
            fetch_bytes(URL, session=session)


class TestIsUrl:

    @pytest.mark.parametrize("value, expected", [
        ("http://example.org/a.tds", True),
        ("https://example.org/a.tds", True),
        ("data/a.tds", False),
        ("ftp://example.org/a.tds", False),
    ])
    def test_schemes(self, value, expected):
        assert is_url(value) is expected

    def test_path_objects_are_not_urls(self, tmp_path):
        assert is_url(tmp_path) is False


class TestDatasetCache:

    def test_downloads_on_miss(self, tmp_path):
        session = _mock_session(b"table")
        cache = DatasetCache(cache_dir=tmp_path, session=session)

        path = cache.get(URL)

        assert path.read_bytes() == b"table"
        assert path.parent == tmp_path
        assert path.name.endswith("Brauer2008_DataSet1.tds")
        session.get.assert_called_once()

    def test_reuses_cached_copy(self, tmp_path):
        session = _mock_session(b"table")
        cache = DatasetCache(cache_dir=tmp_path, session=session)

        first = cache.get(URL)
        second = cache.get(URL)

        assert first == second
        assert session.get.call_count == 1

    def test_refresh_downloads_again(self, tmp_path):
        session = _mock_session(b"table")
        cache = DatasetCache(cache_dir=tmp_path, session=session)

        cache.get(URL)
        session.get.return_value.content = b"new table"
        path = cache.get(URL, refresh=True)

        assert path.read_bytes() == b"new table"
        assert session.get.call_count == 2

    def test_distinct_urls_do_not_collide(self, tmp_path):
        cache = DatasetCache(cache_dir=tmp_path)
        assert cache.path_for("http://a.org/data.tds") != cache.path_for("http://b.org/data.tds")

    def test_failed_download_leaves_no_file(self, tmp_path):
        session = _mock_session(status_error=requests.HTTPError("500"))
        cache = DatasetCache(cache_dir=tmp_path, session=session)

        with pytest.raises(requests.HTTPError):
            cache.get(URL)
        assert list(tmp_path.iterdir()) == []

    def test_env_cache_dir(self, tmp_path):
        with patch.dict(os.environ, {"NUTRIENT_GROWTH_CACHE_DIR": str(tmp_path)}):
            cache = DatasetCache()
        assert cache.cache_dir == tmp_path
