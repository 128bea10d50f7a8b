"""Resolve frame paths such as ``"outer >> inner"`` to a Playwright scope.

A scope is either the page itself or a ``Frame``; both expose the same
``click``/``fill``/``content``/``evaluate`` coroutines, so the dispatcher
does not care which one it receives.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from .errors import FrameNotFoundError

logger = logging.getLogger(__name__)

FRAME_SEPARATOR = ">>"


def split_frame_path(frame_path: str) -> list[str]:
    return [segment.strip() for segment in frame_path.split(FRAME_SEPARATOR) if segment.strip()]


def describe_frames(page: Any) -> list[str]:
    main = page.main_frame
    described: list[str] = []
    for frame in page.frames:
        if frame is main:
            continue
        described.append(f"{frame.name or '<anonymous>'} ({frame.url})")
    return described


async def resolve_scope(page: Any, frame_path: Optional[str]) -> Any:
    if not frame_path:
        return page
    segments = split_frame_path(frame_path)
    if not segments:
        return page

    scope: Any = page
    for segment in segments:
        frame = await _find_child_frame(scope, segment)
        if frame is None:
            available = describe_frames(page)
            logger.warning(
                "Frame %r not found in path %r; available frames: %s", segment, frame_path, available
            )
            raise FrameNotFoundError(segment, available)
        scope = frame
    return scope


async def _find_child_frame(scope: Any, segment: str) -> Any:
    for frame in _child_frames(scope):
        if frame.name == segment:
            return frame
    for selector in _candidate_selectors(segment):
        frame = await _content_frame_for(scope, selector)
        if frame is not None:
            return frame
    return None


def _child_frames(scope: Any) -> Iterable[Any]:
    frame = scope.main_frame if hasattr(scope, "main_frame") else scope
    return frame.child_frames


def _candidate_selectors(segment: str) -> list[str]:
    quoted = json.dumps(segment)
    return [
        segment,
        f"iframe[name={quoted}], frame[name={quoted}]",
        f"iframe[id={quoted}], frame[id={quoted}]",
    ]


async def _content_frame_for(scope: Any, selector: str) -> Any:
    try:
        handle = await scope.query_selector(selector)
    except Exception:  # noqa: BLE001 - an invalid selector just means "not this form"
        return None
    if handle is None:
        return None
    return await handle.content_frame()
