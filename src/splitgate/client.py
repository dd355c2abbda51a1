# Copyright (c) Syntropy Systems
"""HTTP client for the search engine's experiment and settings APIs."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar, overload

import httpx
from pydantic import BaseModel, ValidationError
from typing_extensions import Self

from splitgate.errors import ApiError
from splitgate.models.experiment import (
    ConclusionPayload,
    CreateExperimentRequest,
    Experiment,
    ExperimentListResponse,
    ExperimentStatus,
    IndexListResponse,
)
from splitgate.models.results import ResultsSnapshot

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from splitgate.config import SplitgateConfig
    from splitgate.models.base import JSONValue

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        for key in ("message", "detail"):
            value = data.get(key)
            if isinstance(value, str):
                return value
    return str(data)


class ExperimentClient:
    """HTTP client for experiment lifecycle and index settings calls."""

    server_url: str
    timeout: float
    _client: httpx.Client

    def __init__(
        self,
        server_url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
        application_id: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: Base URL of the search engine (e.g., "http://localhost:7700")
            timeout: Request timeout in seconds
            api_key: Sent as x-algolia-api-key when set
            application_id: Sent as x-algolia-application-id when set
            transport: Optional httpx transport, mainly for tests

        """
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        headers: dict[str, str] = {}
        if api_key:
            headers["x-algolia-api-key"] = api_key
        if application_id:
            headers["x-algolia-application-id"] = application_id
        self._client = httpx.Client(
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the client context and return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the client context and close the HTTP client."""
        self.close()

    @overload
    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        params: Mapping[str, object] | None = None,
        *,
        response_model: type[ResponseModel],
    ) -> ResponseModel:
        ...

    @overload
    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        params: Mapping[str, object] | None = None,
        *,
        response_model: None = None,
    ) -> dict[str, JSONValue] | None:
        ...

    def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, object] | None = None,
        params: Mapping[str, object] | None = None,
        *,
        response_model: type[ResponseModel] | None = None,
    ) -> ResponseModel | dict[str, JSONValue] | None:
        """Make an HTTP request to the server."""
        url = f"{self.server_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._client.request(
                method=method,
                url=url,
                json=json,
                params=params,
            )
            _ = response.raise_for_status()
            if response.status_code == httpx.codes.NO_CONTENT or not response.content:
                data: object = None
            else:
                data = response.json()
            if response_model is None:
                return data  # type: ignore[return-value]
            return response_model.model_validate(data)
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            msg = f"Server error: {detail}"
            raise ApiError(msg, status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            msg = f"Connection error: {e}"
            raise ApiError(msg) from e
        except (ValidationError, ValueError) as e:
            msg = f"Unexpected response from {method} {path}: {e}"
            raise ApiError(msg) from e

    # --- Index Operations ---

    def list_indexes(self) -> list[str]:
        """List index names.

        Returns:
            Names of all indexes on the server

        """
        result = self._request("GET", "/1/indexes", response_model=IndexListResponse)
        return [item.name for item in result.items]

    def update_settings(
        self,
        index_name: str,
        settings: Mapping[str, JSONValue],
    ) -> dict[str, JSONValue] | None:
        """Merge settings into an index configuration.

        Args:
            index_name: Index to update
            settings: Settings keys to overwrite; other keys are left alone

        Returns:
            Server acknowledgment (task info)

        """
        logger.info("Updating settings of index %s", index_name)
        return self._request(
            "PUT",
            f"/1/indexes/{index_name}/settings",
            json=dict(settings),
        )

    # --- Experiment Operations ---

    def create_experiment(self, request: CreateExperimentRequest) -> Experiment:
        """Create an experiment in draft status.

        Args:
            request: Validated creation request

        Returns:
            The created experiment

        """
        experiment = self._request(
            "POST",
            "/2/abtests",
            json=request.to_wire(exclude_none=True),
            response_model=Experiment,
        )
        logger.info("Created experiment %s (%s)", experiment.id, experiment.name)
        return experiment

    def list_experiments(
        self,
        status: ExperimentStatus | str | None = None,
        index_name: str | None = None,
    ) -> list[Experiment]:
        """List experiments with optional filtering.

        Args:
            status: Filter by status (draft, running, stopped, concluded)
            index_name: Filter by index

        Returns:
            List of experiments

        """
        params: dict[str, str] = {}
        if status:
            params["status"] = str(status)
        if index_name:
            params["index"] = index_name

        result = self._request(
            "GET",
            "/2/abtests",
            params=params or None,
            response_model=ExperimentListResponse,
        )
        return result.abtests

    def get_experiment(self, experiment_id: str) -> Experiment | None:
        """Get experiment details.

        Args:
            experiment_id: Experiment ID

        Returns:
            The experiment or None if not found

        """
        try:
            return self._request(
                "GET",
                f"/2/abtests/{experiment_id}",
                response_model=Experiment,
            )
        except ApiError as e:
            if e.not_found:
                return None
            raise

    def start_experiment(self, experiment_id: str) -> Experiment:
        """Start a draft experiment."""
        experiment = self._request(
            "POST",
            f"/2/abtests/{experiment_id}/start",
            response_model=Experiment,
        )
        logger.info("Started experiment %s", experiment_id)
        return experiment

    def stop_experiment(self, experiment_id: str) -> Experiment:
        """Stop a running experiment."""
        experiment = self._request(
            "POST",
            f"/2/abtests/{experiment_id}/stop",
            response_model=Experiment,
        )
        logger.info("Stopped experiment %s", experiment_id)
        return experiment

    def delete_experiment(self, experiment_id: str) -> None:
        """Delete an experiment."""
        _ = self._request("DELETE", f"/2/abtests/{experiment_id}")
        logger.info("Deleted experiment %s", experiment_id)

    def get_results(self, experiment_id: str) -> ResultsSnapshot:
        """Fetch the current results snapshot.

        Args:
            experiment_id: Experiment ID

        Returns:
            Results computed by the statistics service

        """
        return self._request(
            "GET",
            f"/2/abtests/{experiment_id}/results",
            response_model=ResultsSnapshot,
        )

    def conclude_experiment(
        self,
        experiment_id: str,
        payload: ConclusionPayload,
    ) -> Experiment:
        """Record a conclusion for an experiment.

        Args:
            experiment_id: Experiment ID
            payload: Winner, reason, metrics and promotion flag

        Returns:
            The concluded experiment

        """
        return self._request(
            "POST",
            f"/2/abtests/{experiment_id}/conclude",
            json=payload.to_wire(),
            response_model=Experiment,
        )


def get_client(
    server_url: str,
    timeout: float = 30.0,
    api_key: str | None = None,
    application_id: str | None = None,
) -> ExperimentClient:
    """Create an ExperimentClient instance."""
    return ExperimentClient(
        server_url,
        timeout=timeout,
        api_key=api_key,
        application_id=application_id,
    )


def client_from_config(
    config: SplitgateConfig,
    server_url: str | None = None,
) -> ExperimentClient:
    """Create a client from loaded configuration, optionally overriding the URL."""
    return get_client(
        server_url or config.server_url,
        timeout=config.timeout,
        api_key=config.api_key,
        application_id=config.application_id,
    )
