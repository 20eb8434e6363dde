"""HTTP client for the Exercism API.

This module provides:
- ExercismClient: HTTP client for listing the remote catalogue
- Track, Exercise, Solution, Iteration: catalogue records
- File fetching for solutions and individual iterations
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar
from urllib.parse import quote

import httpx

from auxiliaire.core.config import ApiConfig
from auxiliaire.core.types import SolutionStatus

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

T = TypeVar("T")


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an API timestamp into an aware datetime.

    Args:
        value: ISO 8601 timestamp, possibly with a trailing "Z".

    Returns:
        Aware datetime (UTC when no offset was given), or None.
    """
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Track:
    """Language track from the catalogue."""

    slug: str
    title: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Track:
        """Create from API response dictionary."""
        return cls(slug=data["slug"], title=data.get("title", data["slug"]))


@dataclass(frozen=True)
class Exercise:
    """Exercise within a track."""

    slug: str
    title: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Exercise:
        """Create from API response dictionary."""
        return cls(slug=data["slug"], title=data.get("title", data["slug"]))


@dataclass(frozen=True)
class Solution:
    """A user's solution to one exercise.

    Attributes:
        uuid: Remote solution identifier.
        track: Track the exercise belongs to.
        exercise: Exercise this solves.
        status: Submission status, or None if the platform reported
            a status we don't know about.
        num_iterations: Number of iterations submitted so far.
        updated_at: Last time anything about the solution changed.
        last_iterated_at: Last time an iteration was submitted.
    """

    uuid: str
    track: Track
    exercise: Exercise
    status: SolutionStatus | None
    num_iterations: int = 0
    updated_at: datetime | None = None
    last_iterated_at: datetime | None = None

    @property
    def last_updated(self) -> datetime | None:
        """Timestamp used to decide whether the remote content moved."""
        return self.last_iterated_at or self.updated_at

    @property
    def display_name(self) -> str:
        """Human-readable "track/exercise" label."""
        return f"{self.track.slug}/{self.exercise.slug}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Solution:
        """Create from API response dictionary."""
        return cls(
            uuid=data["uuid"],
            track=Track.from_dict(data["track"]),
            exercise=Exercise.from_dict(data["exercise"]),
            status=SolutionStatus.from_api(data.get("status", "")),
            num_iterations=data.get("num_iterations") or 0,
            updated_at=parse_datetime(data.get("updated_at")),
            last_iterated_at=parse_datetime(data.get("last_iterated_at")),
        )


@dataclass(frozen=True)
class Iteration:
    """One submitted snapshot in a solution's history."""

    idx: int
    uuid: str
    submission_uuid: str
    created_at: datetime | None = None
    is_published: bool = False
    status: str = ""

    @property
    def is_deleted(self) -> bool:
        """Whether the iteration was deleted on the platform."""
        return self.status == "deleted"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Iteration:
        """Create from API response dictionary."""
        return cls(
            idx=int(data["idx"]),
            uuid=data["uuid"],
            submission_uuid=data.get("submission_uuid", ""),
            created_at=parse_datetime(data.get("created_at")),
            is_published=bool(data.get("is_published", False)),
            status=data.get("status") or "",
        )


class ExercismClient:
    """HTTP client for the Exercism API."""

    def __init__(
        self,
        config: ApiConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: API connection settings.
            transport: Optional custom transport (mainly for tests).
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.api_base_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
            follow_redirects=True,
            transport=transport,
        )

    @property
    def config(self) -> ApiConfig:
        """Get the API configuration."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> ExercismClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {response.request.url}", 404)
        if response.status_code >= 400:
            raise APIError(_error_detail(response), response.status_code)
        return response

    def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Perform a GET request, normalizing transport errors."""
        try:
            response = self._client.get(url, params=params)
        except httpx.RequestError as e:
            raise APIError(f"Request to {url} failed: {e}") from e
        return self._handle_response(response)

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Perform a GET request and decode a JSON object body."""
        response = self._get(url, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON from {url}: {e}", response.status_code) from e
        if not isinstance(data, dict):
            raise APIError(f"Unexpected response from {url}: not an object", response.status_code)
        return data

    def _parse_items(
        self,
        url: str,
        items: Any,
        factory: Callable[[dict[str, Any]], T],
    ) -> list[T]:
        """Build records from a list of API objects."""
        if not isinstance(items, list):
            raise APIError(f"Unexpected response from {url}: expected a list")
        try:
            return [factory(item) for item in items]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise APIError(f"Malformed item in response from {url}: {e!r}") from e

    # === Catalogue ===

    def list_tracks(self) -> list[Track]:
        """List all language tracks.

        Returns:
            List of tracks.
        """
        url = "/v2/tracks"
        return self._parse_items(url, self._get_json(url).get("tracks", []), Track.from_dict)

    def list_exercises(self, track: Track | str) -> list[Exercise]:
        """List exercises of a track.

        Args:
            track: Track or track slug.

        Returns:
            List of exercises.
        """
        slug = track.slug if isinstance(track, Track) else track
        url = f"/v2/tracks/{quote(slug)}/exercises"
        return self._parse_items(url, self._get_json(url).get("exercises", []), Exercise.from_dict)

    def list_solutions(
        self,
        track: str | None = None,
        status: SolutionStatus | None = None,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> list[Solution]:
        """List the user's solutions, following pagination.

        The server-side filters only narrow the listing; callers still
        apply their own selection.

        Args:
            track: Optional track slug filter.
            status: Optional exact status filter.
            per_page: Page size to request.

        Returns:
            List of solutions, in server order.
        """
        url = "/v2/solutions"
        solutions: list[Solution] = []
        page = 1
        while True:
            params: dict[str, Any] = {
                "page": page,
                "per_page": per_page,
                "order": "newest_first",
            }
            if track:
                params["track_slug"] = track
            if status is not None:
                params["status"] = _API_STATUS_NAMES[status]

            data = self._get_json(url, params=params)
            results = self._parse_items(url, data.get("results", []), Solution.from_dict)
            solutions.extend(results)

            meta = data.get("meta") or {}
            try:
                total_pages = int(meta.get("total_pages", 1))
                current_page = int(meta.get("current_page", page))
            except (AttributeError, TypeError, ValueError) as e:
                raise APIError(f"Malformed pagination in response from {url}: {e!r}") from e
            logger.debug(f"Fetched solutions page {page}/{total_pages} ({len(results)} results)")
            if not results or current_page >= total_pages:
                break
            page += 1

        return solutions

    def list_iterations(self, solution: Solution) -> list[Iteration]:
        """List the iterations of a solution, oldest first.

        Args:
            solution: Solution to inspect.

        Returns:
            Iterations sorted by index.
        """
        url = f"/v2/solutions/{solution.uuid}"
        data = self._get_json(url, params={"sideload": "iterations"})
        iterations = self._parse_items(url, data.get("iterations", []), Iteration.from_dict)
        return sorted(iterations, key=lambda i: i.idx)

    # === Files ===

    def fetch_files(
        self,
        solution: Solution,
        iteration: Iteration | None = None,
    ) -> dict[str, bytes]:
        """Fetch the files of a solution or of one of its iterations.

        Args:
            solution: Solution owning the files.
            iteration: Iteration to fetch; the latest solution files if None.

        Returns:
            Mapping of relative file path to content.
        """
        if iteration is not None:
            return self._fetch_iteration_files(solution, iteration)

        url = f"/v1/solutions/{solution.uuid}"
        data = self._get_json(url)
        try:
            paths = [str(p) for p in data["solution"].get("files", [])]
        except (AttributeError, KeyError, TypeError) as e:
            raise APIError(f"Malformed file list in response from {url}: {e!r}") from e

        files: dict[str, bytes] = {}
        for path in paths:
            files[path] = self._get(
                f"/v1/solutions/{solution.uuid}/files/{quote(path)}"
            ).content
            logger.debug(f"Fetched {solution.display_name}: {path}")
        return files

    def _fetch_iteration_files(
        self,
        solution: Solution,
        iteration: Iteration,
    ) -> dict[str, bytes]:
        url = f"/v2/solutions/{solution.uuid}/submissions/{iteration.submission_uuid}/files"
        entries = self._parse_items(
            url,
            self._get_json(url).get("files", []),
            lambda f: (f["filename"], (f.get("content") or "").encode("utf-8")),
        )
        return dict(entries)


_API_STATUS_NAMES: dict[SolutionStatus, str] = {
    SolutionStatus.STARTED: "started",
    SolutionStatus.SUBMITTED: "iterated",
    SolutionStatus.COMPLETED: "completed",
    SolutionStatus.PUBLISHED: "published",
}


def _error_detail(response: httpx.Response) -> str:
    """Extract a readable error message from an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", "Unknown error"))
    return "Unknown error"
