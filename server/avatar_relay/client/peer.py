"""Peer connection helpers: ICE configuration and local candidate extraction."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from aiortc import RTCConfiguration, RTCIceCandidate, RTCIceServer, RTCPeerConnection
from aiortc.sdp import candidate_to_sdp

from ..config import PUBLIC_STUN_URL
from ..models.schemas import IceServerDescriptor

logger = logging.getLogger(__name__)

PeerFactory = Callable[[RTCConfiguration], RTCPeerConnection]


def build_rtc_configuration(descriptors: Iterable[IceServerDescriptor]) -> RTCConfiguration:
    """Map provider ICE servers onto aiortc, falling back to public STUN."""

    ice_servers = [
        RTCIceServer(urls=server.urls, username=server.username, credential=server.credential)
        for server in descriptors
    ]
    if not ice_servers:
        logger.info("Provider returned no ICE servers; using %s", PUBLIC_STUN_URL)
        ice_servers = [RTCIceServer(urls=PUBLIC_STUN_URL)]
    return RTCConfiguration(iceServers=ice_servers)


def create_peer_connection(configuration: RTCConfiguration) -> RTCPeerConnection:
    return RTCPeerConnection(configuration=configuration)


def candidate_to_json(candidate: RTCIceCandidate) -> dict[str, Any]:
    """Serialize an aiortc candidate the way a browser's RTCIceCandidate.toJSON() does."""

    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidates_from_sdp(sdp: Optional[str]) -> list[dict[str, Any]]:
    """Return every `a=candidate` line of an SDP blob as browser-style JSON.

    aiortc gathers during setLocalDescription and embeds the results in the
    description instead of firing one event per candidate.
    """

    found: list[dict[str, Any]] = []
    sections: list[tuple[Optional[str], list[str]]] = []
    for raw_line in (sdp or "").splitlines():
        line = raw_line.strip()
        if line.startswith("m="):
            sections.append((None, []))
        elif not sections:
            continue
        elif line.startswith("a=mid:"):
            sections[-1] = (line[len("a=mid:"):], sections[-1][1])
        elif line.startswith("a=candidate:"):
            sections[-1][1].append(line[len("a="):])

    for index, (mid, lines) in enumerate(sections):
        for candidate in lines:
            found.append({"candidate": candidate, "sdpMid": mid, "sdpMLineIndex": index})
    return found
