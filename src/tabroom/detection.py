"""Video detection in a tab."""
import logging

from .background import BackgroundClient
from .errors import TransportError
from .models.tab import DetectResponse

logger = logging.getLogger(__name__)

DETECT_VIDEO_MESSAGE = {"message": "detectVideo"}


async def detect_video(background: BackgroundClient, tab_id: int) -> DetectResponse:
    """Ask the page agent of ``tab_id`` whether it found a video.

    Transport failures and unexpected answers come back as error responses.
    """
    try:
        payload = await background.send_tab_message(tab_id, dict(DETECT_VIDEO_MESSAGE))
    except TransportError as e:
        logger.warning(f"Video detection in tab {tab_id} failed: {e}")
        return DetectResponse(status="error", message=e.detail)

    try:
        response = DetectResponse.model_validate(payload)
    except ValueError:
        logger.warning(f"Unexpected detection answer from tab {tab_id}: {payload!r}")
        return DetectResponse(status="error", message="Unexpected answer from page")

    return response
