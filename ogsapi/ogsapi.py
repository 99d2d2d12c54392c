import json
import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from gamelist.models import Rating

logger = logging.getLogger(__name__)

'''
Default configuration values.
These can be modified as needed.
'''
defaults = {
    "base_url": "https://online-go.com",
    "timeout": 10,                          #Seconds to wait for the REST API before giving up.
    "page_size": 25,                        #Players per page. The API caps this at 100.
    "headers": {
        "accept": "application/json",
        "user-agent": "OGSGameNotifier",
    },
}

'''
REST endpoints. The keys are used to identify the endpoint when calling fetch_endpoint().
'''
endpoints = {
    "players":
                    {
                    "endpoint": "/api/v1/players",
                    "method": "GET"
                    },
    "player":
                    {
                    "endpoint": "/api/v1/players/{player_id}",
                    "method": "GET"
                    },
}


class OGSAPIError(Exception):
    """The REST API call failed or returned an unexpected body."""


@dataclass(frozen=True)
class RatedPlayer:
    """A player as listed by the players endpoint (not joined with games)."""

    id: int
    username: str = ""
    country: str = ""
    icon: str = ""
    rating_overall: Rating = field(default_factory=Rating)

    @classmethod
    def from_dict(cls, data: dict) -> "RatedPlayer":
        if not isinstance(data, dict) or "id" not in data:
            raise ValueError(f"Malformed player entry: {data!r}")
        ratings = data.get("ratings") or {}
        return cls(
            id=int(data["id"]),
            username=str(data.get("username") or ""),
            country=str(data.get("country") or ""),
            icon=str(data.get("icon") or ""),
            rating_overall=Rating.from_dict(ratings.get("overall")),
        )


@dataclass
class PlayersPage:
    count: int
    next: Optional[str]
    previous: Optional[str]
    results: list[RatedPlayer]


## <------------------------------------- General purpose endpoint handler -------------------------------------> ##
def fetch_endpoint(endpoint_name=None, params=None, path_values=None, headers=defaults["headers"], timeout=defaults["timeout"]):
    '''
    Fetches an endpoint from the OGS REST API. Endpoint name must be specified.

    :param endpoint_name: The name of the endpoint to fetch. Must be a key in the endpoints dictionary.
    :param params: Query string parameters.
    :param path_values: Values substituted into the endpoint path, e.g. {"player_id": 1}.
    :param headers: The headers to include in the request.
    :param timeout: Seconds to wait before the request is abandoned.
    :return: dict with status_code, message and the decoded JSON content (or None).
    '''
    if not endpoint_name or endpoint_name not in endpoints:
        return {"status_code": 400, "message": f"Invalid or missing endpoint. Valid endpoints are: {list(endpoints.keys())}", "content": None}

    endpoint = endpoints[endpoint_name]
    url = defaults["base_url"] + endpoint["endpoint"].format(**(path_values or {}))
    logger.debug("%s %s params=%s", endpoint["method"], url, params)

    try:
        response = requests.request(endpoint["method"], url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise OGSAPIError(f"could not fetch {endpoint_name}: {exc}") from exc

    content = None
    if response.content:
        try:
            content = json.loads(response.content)
        except json.JSONDecodeError as exc:
            raise OGSAPIError(f"could not decode {endpoint_name} response: {exc}") from exc
    return {"status_code": response.status_code, "message": response.reason, "content": content}


## <------------------------------------- Players -------------------------------------> ##
def get_players(page=1, page_size=defaults["page_size"], ordering="-ratings"):
    '''
    Fetches one page of players with their overall rating.

    :param page: 1-based page number.
    :param page_size: Players per page.
    :param ordering: Sort order understood by the API; "-ratings" lists the strongest players first.
    :raises OGSAPIError: On HTTP errors or a malformed body.
    '''
    response = fetch_endpoint(
        "players",
        params={"page": page, "page_size": page_size, "ordering": ordering},
    )
    if response["status_code"] != 200:
        raise OGSAPIError(f"unexpected response, status: {response['status_code']} {response['message']}")

    content = response["content"]
    if not isinstance(content, dict) or not isinstance(content.get("results"), list):
        raise OGSAPIError("could not decode players response")

    players = []
    for entry in content["results"]:
        try:
            players.append(RatedPlayer.from_dict(entry))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping player entry: %s", exc)

    return PlayersPage(
        count=int(content.get("count") or 0),
        next=content.get("next"),
        previous=content.get("previous"),
        results=players,
    )


def get_player(player_id):
    response = fetch_endpoint("player", path_values={"player_id": player_id})
    if response["status_code"] != 200:
        raise OGSAPIError(f"unexpected response, status: {response['status_code']} {response['message']}")
    try:
        return RatedPlayer.from_dict(response["content"])
    except (TypeError, ValueError) as exc:
        raise OGSAPIError(f"could not decode player {player_id}: {exc}") from exc
