"""Shared step navigation and validation plumbing for the wizards."""
from __future__ import annotations

import copy
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from core.db.schemas.common import error_map


class StepWizard:
    """Holds ``form_data`` and a 1-based ``current_step``.

    Subclasses set ``TOTAL_STEPS`` and ``INITIAL_FORM_DATA`` and implement
    ``validate_step`` / ``get_step_errors``.
    """

    TOTAL_STEPS = 1
    INITIAL_FORM_DATA: Dict[str, Any] = {}

    def __init__(self) -> None:
        self.current_step = 1
        self.form_data: Dict[str, Any] = copy.deepcopy(self.INITIAL_FORM_DATA)

    @property
    def total_steps(self) -> int:
        return self.TOTAL_STEPS

    @property
    def progress_percentage(self) -> float:
        return self.current_step / self.TOTAL_STEPS * 100

    @property
    def is_first_step(self) -> bool:
        return self.current_step == 1

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.TOTAL_STEPS

    def update_form_data(self, **changes: Any) -> None:
        self.form_data.update(changes)

    def validate_step(self, step: int) -> bool:
        raise NotImplementedError

    def get_step_errors(self, step: Optional[int] = None) -> Dict[str, str]:
        raise NotImplementedError

    def is_current_step_valid(self) -> bool:
        return self.validate_step(self.current_step)

    def next_step(self) -> None:
        if self.current_step < self.TOTAL_STEPS:
            self.current_step += 1

    def prev_step(self) -> None:
        if self.current_step > 1:
            self.current_step -= 1

    def go_to_step(self, step: int) -> None:
        if 1 <= step <= self.TOTAL_STEPS:
            self.current_step = step

    def reset_form(self) -> None:
        self.form_data = copy.deepcopy(self.INITIAL_FORM_DATA)
        self.current_step = 1

    @staticmethod
    def _is_valid(schema: Type[BaseModel], data: Dict[str, Any]) -> bool:
        try:
            schema.model_validate(data)
        except ValidationError:
            return False
        return True

    @staticmethod
    def _errors(schema: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, str]:
        try:
            schema.model_validate(data)
        except ValidationError as exc:
            return error_map(exc)
        return {}
