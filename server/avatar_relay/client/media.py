"""Output surface for the avatar's incoming media."""
from __future__ import annotations

import logging
from typing import Optional, Union

from aiortc.contrib.media import MediaBlackhole, MediaRecorder
from aiortc.mediastreams import MediaStreamTrack

logger = logging.getLogger(__name__)


class VideoSurface:
    """Consumes the first remote video track.

    Records to a file when a path is given, otherwise drains frames so the
    receiver does not back up.
    """

    def __init__(self, record_path: Optional[str] = None):
        self._record_path = record_path
        self._sink: Optional[Union[MediaRecorder, MediaBlackhole]] = None
        self._track: Optional[MediaStreamTrack] = None

    @property
    def attached(self) -> bool:
        return self._track is not None

    async def attach(self, track: MediaStreamTrack) -> None:
        if self._track is not None:
            logger.debug("Surface already showing track %s; ignoring %s", self._track.id, track.id)
            return
        sink = MediaRecorder(self._record_path) if self._record_path else MediaBlackhole()
        sink.addTrack(track)
        self._sink = sink
        self._track = track
        await sink.start()
        logger.info("Attached remote %s track %s", track.kind, track.id)

    async def detach(self) -> None:
        sink, self._sink, self._track = self._sink, None, None
        if sink is not None:
            await sink.stop()
