"""Remote completion client.

Sends one request per turn and turns the streamed, newline-delimited response
into :mod:`chatterm.streaming` events. Every call to :meth:`CompletionClient.stream`
yields zero or more ``Delta`` events followed by exactly one ``Done`` or
``Failed``. The client is blocking and is meant to run on a worker thread.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Generator, Sequence
from typing import Any

import httpx

from chatterm.config import ChatConfig
from chatterm.exceptions import ApiStatusError, ConnectionError, StreamingError
from chatterm.streaming import (
    Delta,
    Done,
    Failed,
    RecordDecoder,
    StreamEvent,
    StreamingMetrics,
    make_decoder,
)

logger = logging.getLogger(__name__)


def _describe_transport_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"Request timed out ({type(exc).__name__})"
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.ConnectError):
        return f"Connection failed: {detail}"
    return f"Connection error: {detail}"


class CompletionClient:
    """Client for the Messages API.

    Args:
        config: Startup configuration. The credential is taken from here and
            never read from the environment at call time.
        transport: Optional httpx transport, used by tests to fake the service.
        decoder: Optional record decoder; defaults to ``config.stream_format``.
    """

    def __init__(
        self,
        config: ChatConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        decoder: RecordDecoder | None = None,
    ) -> None:
        self.config = config
        self._decoder = decoder or make_decoder(config.stream_format)
        self._http = httpx.Client(
            transport=transport,
            timeout=httpx.Timeout(config.read_timeout, connect=config.connect_timeout),
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "CompletionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
        }

    def build_payload(self, history: Sequence[dict[str, str]]) -> dict[str, Any]:
        """Build the request body from the ordered conversation so far."""
        messages = []
        for item in history:
            role = item["role"]
            content = item["content"]
            if role not in ("user", "assistant"):
                raise ValueError(f"Invalid message role: {role!r}")
            if not isinstance(content, str):
                raise TypeError(f"Message content must be str, got {type(content).__name__}")
            messages.append({"role": role, "content": content})
        if not messages:
            raise ValueError("Cannot send an empty conversation")

        payload: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": messages,
        }
        if self.config.stream_format == "sse":
            payload["stream"] = True
        return payload

    def stream(
        self,
        history: Sequence[dict[str, str]],
        *,
        should_stop: Callable[[], bool] | None = None,
    ) -> Generator[StreamEvent, None, None]:
        """Send the conversation and yield events as the response arrives.

        Args:
            history: Ordered ``{role, content}`` pairs.
            should_stop: Checked between records. When it returns True the
                request is abandoned: the connection is closed and no terminal
                event is produced, since nobody is listening anymore.
        """
        try:
            body = json.dumps(self.build_payload(history)).encode("utf-8")
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Could not build request payload: %s", exc)
            yield Failed(f"Could not build request: {exc}")
            return

        metrics = StreamingMetrics()
        metrics.start()
        try:
            with self._http.stream(
                "POST", self.config.messages_url, content=body, headers=self.headers
            ) as response:
                if not response.is_success:
                    response.read()
                    raise ApiStatusError(response.text, status_code=response.status_code)

                for line in response.iter_lines():
                    if should_stop is not None and should_stop():
                        logger.debug("Request abandoned after %d records", metrics.total_records)
                        return
                    record = line.strip()
                    if not record:
                        continue
                    metrics.total_records += 1
                    text = self._decoder.decode(record)
                    if text is None:
                        continue
                    delta = Delta(text)
                    metrics.record_delta(delta)
                    yield delta
        except ApiStatusError as exc:
            logger.warning("Service returned HTTP %s", exc.status_code)
            yield Failed(exc.message)
            return
        except StreamingError as exc:
            logger.warning("Stream decode failed: %s", exc)
            yield Failed(exc.message)
            return
        except httpx.HTTPError as exc:
            reason = _describe_transport_error(exc)
            logger.warning("Transport error: %s", reason)
            yield Failed(reason)
            return

        logger.debug(
            "Stream complete",
            extra={
                "records": metrics.total_records,
                "deltas": metrics.total_deltas,
                "chars": metrics.total_chars,
                "ttfd_ms": metrics.time_to_first_delta_ms,
                "deltas_per_second": round(metrics.deltas_per_second, 2),
            },
        )
        yield Done()

    def probe(self) -> None:
        """Check that the service is reachable and accepts the credential.

        Performs and awaits a real ``GET /v1/models`` request.

        Raises:
            ConnectionError: If the service cannot be reached.
            ApiStatusError: If the service rejects the request.
        """
        try:
            response = self._http.get(self.config.models_url, headers=self.headers)
        except httpx.HTTPError as exc:
            raise ConnectionError(
                _describe_transport_error(exc), host=httpx.URL(self.config.base_url).host
            ) from exc
        if not response.is_success:
            raise ApiStatusError(response.text, status_code=response.status_code)
        logger.info("Service reachable at %s", self.config.base_url)
