from typing import List, Optional

from pydantic import BaseModel, Field

from .goal import DEFAULT_COLOR_TAG, DEFAULT_TASK_DETAIL, DEFAULT_TASK_LABEL


class PhaseSpec(BaseModel):
    name: str
    duration_days: int = Field(gt=0)
    task_label: str = DEFAULT_TASK_LABEL
    task_detail: str = DEFAULT_TASK_DETAIL
    color_tag: str = DEFAULT_COLOR_TAG


class Blueprint(BaseModel):
    title: str
    total_days: Optional[int] = None
    phases: List[PhaseSpec]

    @property
    def resolved_total_days(self) -> int:
        if self.total_days is not None:
            return self.total_days
        return sum(phase.duration_days for phase in self.phases)
