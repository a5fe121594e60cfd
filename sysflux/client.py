#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
from typing import Dict, Optional

import requests
from requests import Response, Session

from sysflux import __version__
from sysflux.exceptions import TransportError, UnexpectedStatusError
from sysflux.log import get_logger_adapter

logger = get_logger_adapter(__name__)

DEFAULT_REQUEST_TIMEOUT = 10
WRITE_CONTENT_TYPE = "application/x-www-form-urlencoded"
WRITE_SUCCESS_STATUS = 204


class InfluxWriteClient:
    """
    Posts line-protocol payloads to an InfluxDB write endpoint.
    Anything other than "204 No Content" is a failed write.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        verify: bool = True,
        curlify_requests: bool = False,
    ):
        self._timeout = timeout
        self._verify = verify
        self._curlify = curlify_requests
        self._init_session()

    def _init_session(self) -> None:
        self._session: Session = requests.Session()
        self._session.verify = self._verify
        self._session.headers.update({"User-Agent": f"sysflux/{__version__}"})

    def _log_curl(self, resp: Response) -> None:
        import curlify  # type: ignore  # import here as it's not always required.

        logger.debug(f"API request: {curlify.to_curl(resp.request)} (status {resp.status_code})")

    def write(self, url: str, payload: str, host_header: Optional[str] = None) -> None:
        headers: Dict[str, str] = {"Content-Type": WRITE_CONTENT_TYPE}
        if host_header is not None:
            headers["Host"] = host_header

        try:
            resp = self._session.post(url, data=payload.encode("utf-8"), headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransportError(f"HTTP POST to {url} failed: {e}") from e

        if self._curlify:
            self._log_curl(resp)

        if resp.status_code != WRITE_SUCCESS_STATUS:
            raise UnexpectedStatusError(resp.status_code, resp.text)

    def close(self) -> None:
        self._session.close()
