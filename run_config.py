"""Validated run parameters for one repeat-print session."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from receipt_counter import locate_splice_index
from repeat_errors import ConfigurationError
from repeat_settings import MIN_DELAY_SECONDS, SERIAL_BAUDRATE, SPOOLER_JOB_NAME, UNBOUNDED

logger = logging.getLogger("thermalrepeat.config")

SERIAL_PREFIX = "COM"


class TransportKind(enum.Enum):
    SERIAL = "serial"
    SPOOLER = "spooler"


@dataclass(frozen=True)
class RunConfig:
    file_name: str
    template: bytes
    device_id: str
    delay_seconds: int
    repeat_count: int
    splice_index: Optional[int]
    transport_kind: TransportKind
    baudrate: int = SERIAL_BAUDRATE
    job_name: str = SPOOLER_JOB_NAME
    delay_clamped: bool = False

    @property
    def injects_counter(self) -> bool:
        return self.splice_index is not None

    def describe(self, repeat_count: Optional[int] = None) -> str:
        """One-line snapshot used when reporting a failed run."""
        if repeat_count is None:
            repeat_count = self.repeat_count
        return (f"File: {self.file_name}, DeviceId: {self.device_id}, "
                f"SecondsDelay: {self.delay_seconds}, RepeatCount: {repeat_count}")


def classify_device(device_id: str) -> TransportKind:
    if str(device_id or '').upper().startswith(SERIAL_PREFIX):
        return TransportKind.SERIAL
    return TransportKind.SPOOLER


def _parse_int(text, what: str) -> int:
    try:
        return int(str(text).strip())
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{what} must be an integer, got {text!r}") from e


def build_run_config(template: bytes, delay_text, device_id: str, repeat_text=None, *,
                     file_name: str = '', baudrate: int = SERIAL_BAUDRATE,
                     job_name: str = SPOOLER_JOB_NAME) -> RunConfig:
    delay = _parse_int(delay_text, "delay")
    repeat = UNBOUNDED if repeat_text is None else _parse_int(repeat_text, "repeat count")
    if repeat < UNBOUNDED:
        raise ConfigurationError(f"repeat count must be {UNBOUNDED} or >= 0, got {repeat}")

    device_id = str(device_id or '').strip()
    if not device_id:
        raise ConfigurationError("device id is empty")

    delay_clamped = delay < MIN_DELAY_SECONDS
    if delay_clamped:
        logger.warning(f"Minimum delay is {MIN_DELAY_SECONDS} seconds, setting to minimum (got {delay})")
        delay = MIN_DELAY_SECONDS

    template = bytes(template)
    splice_index = locate_splice_index(template)
    if splice_index is None:
        logger.info("[CONFIG] No counter marker in template, sending it unmodified")
    else:
        logger.info(f"[CONFIG] Counter marker found, splice index {splice_index}")

    return RunConfig(
        file_name=file_name,
        template=template,
        device_id=device_id,
        delay_seconds=delay,
        repeat_count=repeat,
        splice_index=splice_index,
        transport_kind=classify_device(device_id),
        baudrate=int(baudrate),
        job_name=job_name,
        delay_clamped=delay_clamped,
    )
