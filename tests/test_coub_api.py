import json
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from getcoub.coub_api import CoubClient, coub_id_from_link, filename_from_url
from getcoub.errors import NetworkError, ParseError
from getcoub.parser import CoubSources, parse_coub_page, pick_highest_quality


def coub_page(payload):
    return (
        "<html><head><title>coub</title></head><body>"
        '<script id="coubPageCoubJson" type="text/json">'
        f"{json.dumps(payload)}"
        "</script></body></html>"
    )


@pytest.fixture
def coub_payload():
    return {
        "file_versions": {
            "html5": {
                "video": {
                    "high": {"url": "https://cdn.coub.com/v/high_muted.mp4"},
                    "med": {"url": "https://cdn.coub.com/v/med_muted.mp4"},
                },
                "audio": {
                    "med": {"url": "https://cdn.coub.com/a/med.mp3"},
                    "low": {"url": "https://cdn.coub.com/a/low.mp3"},
                },
            }
        },
        "image_versions": {
            "template": "https://cdn.coub.com/i/%{version}_image.jpg",
        },
    }


def mock_response(status_code=200, text="", chunks=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.iter_content.return_value = chunks or []
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


class TestCoubId:
    def test_view_link(self):
        assert coub_id_from_link("http://coub.com/view/dl5px") == "dl5px"

    def test_trailing_slash_and_query(self):
        assert coub_id_from_link("https://coub.com/view/dl5px/?ref=x#t") == "dl5px"

    def test_bare_id(self):
        assert coub_id_from_link("dl5px") == "dl5px"

    def test_empty_link(self):
        with pytest.raises(ParseError):
            coub_id_from_link("https://coub.com/")

    def test_filename_from_url(self):
        url = "https://cdn.coub.com/v/high_muted.mp4?token=abc"
        assert filename_from_url(url) == "high_muted.mp4"


class TestParser:
    def test_highest_quality_wins(self):
        versions = {
            "low": {"url": "l"},
            "med": {"url": "m"},
            "high": {"url": "h"},
        }
        assert pick_highest_quality(versions) == "h"

    def test_falls_back_in_order(self):
        assert pick_highest_quality({"low": {"url": "l"}, "med": {"url": "m"}}) == "m"
        assert pick_highest_quality({"low": {"url": "l"}}) == "l"

    def test_nothing_available(self):
        assert pick_highest_quality({}) is None
        assert pick_highest_quality(None) is None
        assert pick_highest_quality({"high": {}}) is None

    def test_parse_page(self, coub_payload):
        sources = parse_coub_page(coub_page(coub_payload))

        assert sources == CoubSources(
            video_url="https://cdn.coub.com/v/high_muted.mp4",
            audio_url="https://cdn.coub.com/a/med.mp3",
            thumbnail_url="https://cdn.coub.com/i/small_image.jpg",
        )

    def test_page_without_json(self):
        with pytest.raises(ParseError, match="coubPageCoubJson"):
            parse_coub_page("<html><body>nothing here</body></html>")

    def test_page_with_broken_json(self):
        html = '<script id="coubPageCoubJson">{not json</script>'
        with pytest.raises(ParseError, match="Invalid coub JSON"):
            parse_coub_page(html)

    def test_page_without_audio(self, coub_payload):
        coub_payload["file_versions"]["html5"]["audio"] = {}
        with pytest.raises(ParseError, match="audio"):
            parse_coub_page(coub_page(coub_payload))

    def test_page_without_file_versions(self):
        with pytest.raises(ParseError, match="html5"):
            parse_coub_page(coub_page({"id": 1}))

    def test_thumbnail_optional(self, coub_payload):
        del coub_payload["image_versions"]
        assert parse_coub_page(coub_page(coub_payload)).thumbnail_url is None


class TestCoubClient:
    def test_fetch_sources(self, coub_payload):
        client = CoubClient(timeout=5, user_agent="getcoub-test")

        with patch("requests.get") as mock_get:
            mock_get.return_value = Mock(status_code=200, text=coub_page(coub_payload))
            sources = client.fetch_sources("https://coub.com/view/dl5px")

        assert sources.video_url.endswith("high_muted.mp4")
        mock_get.assert_called_once_with(
            "https://coub.com/view/dl5px",
            headers={"User-Agent": "getcoub-test"},
            timeout=5,
        )

    def test_fetch_sources_non_200(self):
        with patch("requests.get", return_value=Mock(status_code=404, text="")):
            with pytest.raises(NetworkError, match="HTTP 404") as exc:
                CoubClient().fetch_sources("https://coub.com/view/nope")

        assert exc.value.user_message().startswith("Error while loading coub page")

    def test_fetch_sources_connection_error(self):
        with patch(
            "requests.get",
            side_effect=requests.ConnectionError("Connection refused"),
        ):
            with pytest.raises(NetworkError, match="Connection refused"):
                CoubClient().fetch_sources("https://coub.com/view/dl5px")

    def test_download_writes_chunks(self, tmp_path):
        dest = tmp_path / "run" / "video.mp4"
        response = mock_response(chunks=[b"abc", b"", b"def"])

        with patch("requests.get", return_value=response) as mock_get:
            path = CoubClient(timeout=9).download("https://cdn/v.mp4", dest, "video")

        assert path == dest
        assert dest.read_bytes() == b"abcdef"
        assert mock_get.call_args.kwargs["stream"] is True
        assert mock_get.call_args.kwargs["timeout"] == 9

    def test_download_non_200(self, tmp_path):
        with patch("requests.get", return_value=mock_response(status_code=403)):
            with pytest.raises(NetworkError) as exc:
                CoubClient().download("https://cdn/a.mp3", tmp_path / "a.mp3", "audio")

        assert exc.value.stage == "audio"
        assert "downloading audio" in exc.value.user_message()
        assert not (tmp_path / "a.mp3").exists()

    def test_download_transport_error(self, tmp_path):
        with patch("requests.get", side_effect=requests.Timeout("read timed out")):
            with pytest.raises(NetworkError, match="read timed out"):
                CoubClient().download("https://cdn/v.mp4", tmp_path / "v.mp4")
