from __future__ import annotations

from pathlib import Path
from typing import Any, Optional


class FloaterError(Exception):
    """Base class; ``__str__`` appends whatever context the subclass knows."""

    def _context(self) -> list[str]:
        return []

    def __str__(self) -> str:
        return " | ".join([super().__str__(), *self._context()])


class SchemaError(FloaterError):
    """A body or scenario document does not match its schema, or the schema is unreadable."""

    def __init__(
        self,
        message: str,
        schema_path: Optional[str | Path] = None,
        schema_name: Optional[str] = None,
        validation_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.schema_path = str(schema_path) if schema_path else None
        self.schema_name = schema_name
        self.validation_error = validation_error

    def _context(self) -> list[str]:
        ctx = []
        if self.schema_name:
            ctx.append(f"Schema: {self.schema_name}")
        if self.schema_path:
            ctx.append(f"Path: {self.schema_path}")
        return ctx


class ConfigError(FloaterError):
    """Body parameters, scenario values or provider settings are unusable."""

    def __init__(
        self,
        message: str,
        config_path: Optional[str | Path] = None,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
    ):
        super().__init__(message)
        self.config_path = str(config_path) if config_path else None
        self.field_name = field_name
        self.field_value = field_value

    def _context(self) -> list[str]:
        ctx = []
        if self.field_name:
            ctx.append(f"Field: {self.field_name}")
            if self.field_value is not None:
                ctx.append(f"Value: {self.field_value}")
        if self.config_path:
            ctx.append(f"Path: {self.config_path}")
        return ctx


class MissingDependency(FloaterError):
    """A component was started without a collaborator it cannot work without."""

    def __init__(self, message: str, dependency: Optional[str] = None):
        super().__init__(message)
        self.dependency = dependency

    def _context(self) -> list[str]:
        return [f"Needs: {self.dependency}"] if self.dependency else []


class SamplingTokenError(FloaterError):
    """A provider was handed a token it never issued or already took back."""

    def __init__(self, message: str, token_id: Optional[int] = None):
        super().__init__(message)
        self.token_id = token_id

    def _context(self) -> list[str]:
        return [f"Token: {self.token_id}"] if self.token_id is not None else []


class NumericalInstability(FloaterError):
    """Body state went non-finite or jumped implausibly during integration."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        value: Optional[float] = None,
        simulation_time: Optional[float] = None,
    ):
        super().__init__(message)
        self.component = component
        self.value = value
        self.simulation_time = simulation_time

    def _context(self) -> list[str]:
        ctx = []
        if self.component:
            ctx.append(f"Component: {self.component}")
        if self.value is not None:
            ctx.append(f"Value: {self.value}")
        if self.simulation_time is not None:
            ctx.append(f"Time: {self.simulation_time:.3f}s")
        return ctx
