"""Unit tests for the explorer command-line interface."""

import io

import httpx
import pytest
from rich.console import Console

from charms_explorer.cli import explorer
from charms_explorer.services import factories

API_URL = "http://indexer.test/v1"

ASSETS = [
    {"app_id": "n/AAA/tx1:0", "name": "Alpha", "block_height": 10},
    {"app_id": "n/AAA/tx2:0", "name": "Alpha", "block_height": 11},
    {"app_id": "t/BBB/tx3:0", "block_height": 12},
    {"app_id": "b/CCC/tx4:0", "block_height": 13},
]

CHARMS = [
    {"app_id": "t/BBB/tx3:0", "address": "bc1qalice", "amount": 600, "block_height": 12},
    {"app_id": "t/BBB/tx5:1", "address": "bc1qbob", "amount": 400, "block_height": 14},
    {"app_id": "t/ZZZ/tx6:0", "address": "bc1qcarol", "amount": 5, "block_height": 15},
]


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/v1/assets":
        return httpx.Response(200, json={"assets": ASSETS})
    if path == "/v1/charms":
        return httpx.Response(200, json={"charms": CHARMS})
    if path == "/v1/assets/reference-nft/BBB":
        return httpx.Response(200, json={"name": "Bravo", "symbol": "BRV", "image_url": "https://img/bravo"})
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(explorer, "console", Console(file=buffer, width=200, color_system=None))
    return buffer


@pytest.fixture
def mock_indexer(monkeypatch):
    def install(handler=_handler):
        def build(settings):
            http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=settings.api_base_url)
            return factories.build_explorer_services(settings, http_client=http_client)

        monkeypatch.setattr(explorer, "build_explorer_services", build)

    return install


def test_counts_command(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "counts"]) == 0

    text = output.getvalue()
    assert "Unique assets" in text
    assert "Total" in text


def test_assets_command_lists_unique_assets(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "assets", "--type", "nft"]) == 0

    text = output.getvalue()
    assert "1 unique" in text
    assert "Alpha" in text


def test_reference_command_prints_metadata(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "reference", "t/BBB/tx3:0"]) == 0

    text = output.getvalue()
    assert "Bravo" in text
    assert "BRV" in text


def test_reference_command_for_non_token_fails(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "reference", "n/AAA/tx1:0"]) == 1
    assert "No reference NFT metadata" in output.getvalue()


def test_holders_falls_back_to_charm_aggregation(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "holders", "t/BBB/tx3:0"]) == 0

    text = output.getvalue()
    assert "2 holders" in text
    assert "60.00%" in text


def test_classify_missing_charm(mock_indexer, output):
    mock_indexer()

    assert explorer.main(["--api-url", API_URL, "classify", "n/NOPE/tx:0"]) == 1
    assert "Charm not found" in output.getvalue()


def test_indexer_failure_exits_nonzero(mock_indexer, output):
    mock_indexer(lambda request: httpx.Response(503))

    assert explorer.main(["--api-url", API_URL, "counts"]) == 1
    assert "Indexer request failed" in output.getvalue()
