from unittest.mock import AsyncMock, patch

import aiohttp

from src.fleet_journal.gps_provider.geocoding import (
    coordinate_label,
    reverse_geocode,
    reverse_geocode_many,
)


def make_response(status=200, body=None):
    response = AsyncMock()
    response.status = status
    response.json.return_value = body
    return response


def test_coordinate_label():
    assert coordinate_label(59.3293, 18.0686) == "59.3293, 18.0686"


@patch("aiohttp.ClientSession.get")
async def test_reverse_geocode_returns_display_name(mock_get):
    mock_get.return_value.__aenter__.return_value = make_response(
        body={"display_name": "Drottninggatan 1, Stockholm"}
    )

    assert await reverse_geocode(59.3293, 18.0686) == "Drottninggatan 1, Stockholm"
    assert mock_get.call_args.kwargs["params"]["lat"] == "59.3293"


@patch("aiohttp.ClientSession.get")
async def test_reverse_geocode_falls_back_on_error_status(mock_get):
    mock_get.return_value.__aenter__.return_value = make_response(status=429)

    assert await reverse_geocode(59.3293, 18.0686) == "59.3293, 18.0686"


@patch("aiohttp.ClientSession.get")
async def test_reverse_geocode_falls_back_on_body_that_is_not_json(mock_get):
    response = make_response()
    response.json.side_effect = ValueError("Expecting value: line 1 column 1")
    mock_get.return_value.__aenter__.return_value = response

    assert await reverse_geocode(59.3293, 18.0686) == "59.3293, 18.0686"


@patch("aiohttp.ClientSession.get")
async def test_reverse_geocode_falls_back_on_unexpected_shape(mock_get):
    mock_get.return_value.__aenter__.return_value = make_response(body=["x"])

    assert await reverse_geocode(59.3293, 18.0686) == "59.3293, 18.0686"


@patch("aiohttp.ClientSession.get")
async def test_reverse_geocode_falls_back_on_network_error(mock_get):
    mock_get.side_effect = aiohttp.ClientConnectionError("refused")

    assert await reverse_geocode(1.5, 2.5) == "1.5, 2.5"


@patch("src.fleet_journal.gps_provider.geocoding.reverse_geocode")
async def test_reverse_geocode_many_dedupes_coordinates(mock_reverse):
    mock_reverse.side_effect = lambda lat, lon: f"addr {lat}"

    addresses = await reverse_geocode_many(
        [(1.0, 2.0), (1.0, 2.0), (3.0, 4.0)], delay_seconds=0
    )

    assert addresses == {(1.0, 2.0): "addr 1.0", (3.0, 4.0): "addr 3.0"}
    assert mock_reverse.await_count == 2
