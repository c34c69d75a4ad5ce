from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class JobConfig(BaseModel):
    """One txt2img request, as read from a configs.jsonl line."""
    model_config = ConfigDict(extra="allow", frozen=True)

    prompt: str = ""
    negative_prompt: str = ""
    width: int = 512
    height: int = 512
    sampler_name: Optional[str] = None
    steps: int = 20
    cfg_scale: float = 7.0
    seed: int = -1  # -1 → random, resolved server-side
    batch_size: int = 1
    n_iter: int = 1
    hires_fix: bool = False

    @classmethod
    def from_line(cls, obj: Dict[str, Any]) -> "JobConfig":
        # structural parse only: values are kept verbatim, never coerced
        return cls.model_construct(_fields_set=set(obj), **obj)

    def payload(self) -> dict:
        """Request body: exactly the fields the source line carried, extras included."""
        return self.model_dump(exclude_unset=True, warnings=False)

    @property
    def expected_iterations(self) -> int:
        try:
            return max(1, int(self.n_iter))
        except (TypeError, ValueError):
            return 1


class ProgressState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    skipped: bool = False
    interrupted: bool = False
    job: Optional[str] = ""
    job_count: int = 0
    job_no: int = 0
    sampling_step: int = 0
    sampling_steps: int = 0


class ProgressSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    progress: float = 0.0
    eta_relative: Optional[float] = 0.0
    state: ProgressState = Field(default_factory=ProgressState)

    @property
    def idle(self) -> bool:
        return self.progress == 0 and not self.state.job


class GenerationResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    images: List[str] = Field(default_factory=list)
    info: Optional[str] = None
