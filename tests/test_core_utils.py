"""Tests for core utilities."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from zynex.core_utils import download_file, remove_dir, remove_file, setup_logging


def _response(chunks, length=None):
    response = MagicMock()
    response.__enter__.return_value = response
    response.headers = {} if length is None else {"content-length": str(length)}
    response.iter_content.return_value = iter(chunks)
    return response


class TestDownloadFile:
    """Tests for download_file."""

    def test_writes_chunks(self, tmp_path):
        dest = tmp_path / "image.part"
        with patch("requests.get", return_value=_response([b"abc", b"", b"def"], length=6)) as get:
            written, expected = download_file("https://example.com/i.img", str(dest), show_progress=False)

        assert (written, expected) == (6, 6)
        assert dest.read_bytes() == b"abcdef"
        assert get.call_args.kwargs["stream"] is True

    def test_no_content_length(self, tmp_path):
        with patch("requests.get", return_value=_response([b"abc"])):
            assert download_file("https://example.com/i.img", str(tmp_path / "x"), show_progress=False) == (3, None)

    def test_http_error_propagates(self, tmp_path):
        response = _response([])
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        with patch("requests.get", return_value=response):
            with pytest.raises(requests.exceptions.RequestException):
                download_file("https://example.com/i.img", str(tmp_path / "x"), show_progress=False)


class TestRemove:
    """Tests for remove_file and remove_dir."""

    def test_remove_file(self, tmp_path):
        target = tmp_path / "f"
        target.write_text("x")
        assert remove_file(str(target)) is True
        assert remove_file(str(target)) is False

    def test_remove_dir(self, tmp_path):
        target = tmp_path / "d"
        (target / "nested").mkdir(parents=True)
        assert remove_dir(str(target)) is True
        assert remove_dir(str(target)) is False


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def clean_logger(self):
        logger = logging.getLogger("zynex")
        saved = logger.handlers[:]
        logger.handlers = []
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers = saved

    def test_file_handler_added_once(self, tmp_path, clean_logger):
        setup_logging(str(tmp_path / "logs"), "debug")
        setup_logging(str(tmp_path / "logs"), "debug")

        assert len(clean_logger.handlers) == 1
        assert clean_logger.level == logging.DEBUG
        logging.getLogger("zynex.lifecycle.test").info("hello")
        assert "hello" in (tmp_path / "logs" / "zynex.log").read_text()

    def test_unwritable_dir_falls_back(self, tmp_path, clean_logger):
        blocker = tmp_path / "file"
        blocker.write_text("not a dir")
        setup_logging(str(blocker / "logs"))
        assert isinstance(clean_logger.handlers[0], logging.NullHandler)
