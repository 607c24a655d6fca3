from unittest.mock import Mock, patch

import pytest
import requests

from voyant.providers.base import ProviderError
from voyant.providers.brave_search import BraveSearchProvider


def _response(status=200, payload=None, bad_json=False):
    r = Mock()
    r.status_code = status
    r.text = "<html>oops</html>" if bad_json else ""
    if bad_json:
        r.json.side_effect = ValueError("Expecting value")
    else:
        r.json.return_value = payload
    return r


class TestBraveSearchProvider:
    @patch("voyant.providers.brave_search.requests.get")
    def test_results(self, mock_get):
        mock_get.return_value = _response(payload={"web": {"results": [
            {"title": "Rome guide", "url": "https://example.com/rome", "description": "Tips"},
            {"title": "no url"},
        ]}})
        out = BraveSearchProvider(api_key="k").search("rome", 3)
        assert out == [{"title": "Rome guide", "url": "https://example.com/rome", "description": "Tips"}]
        assert mock_get.call_args.kwargs["params"] == {"q": "rome", "count": 3}

    @patch("voyant.providers.brave_search.requests.get")
    def test_non_json_body_is_a_provider_error(self, mock_get):
        mock_get.return_value = _response(bad_json=True)
        with pytest.raises(ProviderError):
            BraveSearchProvider(api_key="k").search("rome")

    @patch("voyant.providers.brave_search.requests.get")
    def test_http_error(self, mock_get):
        mock_get.return_value = _response(status=503)
        with pytest.raises(ProviderError):
            BraveSearchProvider(api_key="k").search("rome")

    @patch("voyant.providers.brave_search.requests.get")
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        with pytest.raises(ProviderError):
            BraveSearchProvider(api_key="k").search("rome")

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr("voyant.config.BRAVE_API_KEY", None)
        with pytest.raises(ProviderError):
            BraveSearchProvider(api_key="").search("rome")
