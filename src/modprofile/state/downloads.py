from dataclasses import dataclass
from typing import Dict, Optional

from ..domain.models import DownloadProgress
from ..events import MOD_DOWNLOAD_PROGRESS, EventHub, Subscription

STAGE_TEXT = {
    "connecting": "Connecting...",
    "downloading": "Downloading...",
    "verifying": "Verifying checksum...",
    "writing": "Writing file...",
    "complete": "Complete",
}


@dataclass
class DownloadState:
    status: str  # downloading, complete, error
    progress: Optional[DownloadProgress] = None
    message: Optional[str] = None


class DownloadTracker:
    """per-mod download status, fed by ``mod-download-progress`` events."""

    def __init__(self, hub: EventHub):
        self.hub = hub
        self.downloads: Dict[str, DownloadState] = {}
        self._subscription: Optional[Subscription] = None

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self.hub.subscribe(MOD_DOWNLOAD_PROGRESS, self.set_progress, model=DownloadProgress)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def set_progress(self, progress: DownloadProgress) -> None:
        if progress.stage == "complete":
            self.downloads[progress.mod_id] = DownloadState(status="complete")
        else:
            self.downloads[progress.mod_id] = DownloadState(status="downloading", progress=progress)

    def set_error(self, mod_id: str, message: str) -> None:
        self.downloads[mod_id] = DownloadState(status="error", message=message)

    def clear(self, mod_id: str) -> None:
        self.downloads.pop(mod_id, None)

    def get_state(self, mod_id: str) -> Optional[DownloadState]:
        return self.downloads.get(mod_id)

    def is_downloading(self, mod_id: str) -> bool:
        state = self.downloads.get(mod_id)
        return state is not None and state.status == "downloading"


def stage_text(stage: str) -> str:
    return STAGE_TEXT.get(stage, "")
