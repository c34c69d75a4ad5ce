# -*- coding: utf-8 -*-
import json
import requests
from ..core.config import RunContext
from ..core.errors import TransportError
from ..core.models import GenerationResult, JobConfig, ProgressSnapshot

USER_AGENT = "sd-automate"


class SDClient:
    """
    Thin blocking client for the AUTOMATIC1111 /sdapi/v1 endpoints.
    Every failure (connection, HTTP status, body) surfaces as TransportError;
    retry policy belongs to the caller.
    """

    def __init__(self, ctx: RunContext, session: requests.Session = None):
        self.ctx = ctx
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def _json(self, method: str, url: str, timeout: float, **kw) -> dict:
        try:
            r = self.session.request(method, url, timeout=timeout, **kw)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        except ValueError as e:  # body is not JSON
            raise TransportError(f"{method} {url} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TransportError(f"{method} {url} returned {type(data).__name__}, expected object")
        return data

    def txt2img(self, config: JobConfig) -> GenerationResult:
        data = self._json("POST", self.ctx.txt2img_url, self.ctx.timing.sd_timeout,
                          data=json.dumps(config.payload()),
                          headers={"Content-Type": "application/json"})
        try:
            return GenerationResult.model_validate(data)
        except ValueError as e:
            raise TransportError(f"unexpected txt2img response: {e}") from e

    def progress(self) -> ProgressSnapshot:
        data = self._json("GET", self.ctx.progress_url, self.ctx.timing.progress_timeout)
        try:
            return ProgressSnapshot.model_validate(data)
        except ValueError as e:
            raise TransportError(f"unexpected progress response: {e}") from e

    def close(self):
        self.session.close()
