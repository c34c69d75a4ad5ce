import base64
import io
import threading
import time

import pytest
from PIL import Image

from sdautomate.core.config import RunContext, Timing
from sdautomate.core.models import GenerationResult, ProgressSnapshot

IDLE = {"progress": 0.0, "eta_relative": 0.0, "state": {"job": "", "job_count": 0, "job_no": 0}}
BUSY = {"progress": 0.4, "eta_relative": 3.5,
        "state": {"job": "job(1)", "job_count": 1, "job_no": 0, "sampling_step": 8, "sampling_steps": 20}}


def make_png_b64(color=(200, 40, 40), size=(8, 8)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


class FakeClient:
    """Stands in for SDClient: scripted progress answers and txt2img results."""

    def __init__(self, results=None, progress=None, submit_delay=0.0, after_submit=None):
        self.results = list(results or [])
        self.progress_script = list(progress or [])
        self.submit_delay = submit_delay
        self.after_submit = after_submit
        self.submitted = []
        self.progress_calls = 0
        self._lock = threading.Lock()

    def txt2img(self, config):
        self.submitted.append(config)
        if self.submit_delay:
            time.sleep(self.submit_delay)
        result = self.results.pop(0) if self.results else GenerationResult(images=[make_png_b64()])
        if self.after_submit:
            self.after_submit(len(self.submitted))
        if isinstance(result, Exception):
            raise result
        return result

    def progress(self):
        with self._lock:
            self.progress_calls += 1
            item = self.progress_script.pop(0) if self.progress_script else IDLE
        if isinstance(item, Exception):
            raise item
        return ProgressSnapshot.model_validate(item)

    @property
    def request_count(self):
        return len(self.submitted) + self.progress_calls


@pytest.fixture
def png_b64():
    return make_png_b64()


@pytest.fixture
def ctx(tmp_path):
    return RunContext(
        base_url="http://sd.test:7860",
        configs_file=tmp_path / "configs.jsonl",
        output_dir=tmp_path / "out",
        timing=Timing(sd_timeout=5, progress_timeout=1, poll_interval=0, poll_retry_interval=0,
                      ready_interval=0, ready_retry_interval=0),
        stream=io.StringIO(),
    )
