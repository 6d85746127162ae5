"""Request/response objects and the caller-side generation session.

The pipeline itself is stateless: run_request() takes a GenerationRequest and
returns a GenerationResponse. Session keeps the transient state a front end
needs (current result, last error) and makes sure a slow, superseded request
can never overwrite the result of a newer one.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from PIL import Image

from qrmatrix.errors import QRMatrixError
from qrmatrix.image_utils import ResizeStatus
from qrmatrix.pixel_art import image_to_pixel_art
from qrmatrix.qr_generator import QRPayloadPipeline

logger = logging.getLogger(__name__)


class GenerationKind(Enum):
    """What the QR code is generated from."""
    TEXT = "text"
    IMAGE = "image"


class SessionState(Enum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    GENERATED = "generated"


@dataclass(frozen=True)
class GenerationRequest:
    """A single generation action."""

    kind: GenerationKind
    text: str = ""
    image: Image.Image | None = None

    @classmethod
    def for_text(cls, text: str) -> "GenerationRequest":
        return cls(kind=GenerationKind.TEXT, text=text)

    @classmethod
    def for_image(cls, image: Image.Image) -> "GenerationRequest":
        return cls(kind=GenerationKind.IMAGE, image=image)


@dataclass(frozen=True)
class GenerationResponse:
    """The outcome of a GenerationRequest.

    Attributes:
        qr_image: The QR bitmap, or None if nothing was generated.
        pixel_art: The pixel art payload for image requests, "" otherwise.
        resize_status: How the source image was resampled (image requests).
        error: User-facing message when generation failed.
    """

    qr_image: Image.Image | None = None
    pixel_art: str = ""
    resize_status: ResizeStatus | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.qr_image is not None


def run_request(
    request: GenerationRequest,
    pipeline: QRPayloadPipeline | None = None,
) -> GenerationResponse:
    """Run one request through the pipeline.

    Text requests are encoded directly; image requests are turned into pixel
    art first and the pixel art payload is encoded. Empty input yields an
    empty response. Pipeline errors are reported in ``error`` and never come
    with a partial image.
    """
    pipeline = pipeline or QRPayloadPipeline()

    pixel_art = ""
    resize_status = None
    if request.kind is GenerationKind.IMAGE:
        if request.image is None:
            return GenerationResponse()
        art = image_to_pixel_art(request.image)
        pixel_art = art.text
        resize_status = art.resize.status
        payload = pixel_art
    else:
        payload = request.text

    try:
        qr_image = pipeline.generate(payload)
    except QRMatrixError as e:
        logger.warning("QR generation failed: %s", e)
        return GenerationResponse(error=str(e))

    return GenerationResponse(
        qr_image=qr_image,
        pixel_art=pixel_art,
        resize_status=resize_status,
    )


class GenerationJob:
    """Handle for a request running on a worker thread."""

    def __init__(self, ticket: int):
        self.ticket = ticket
        self.superseded = False
        self._response: GenerationResponse | None = None
        self._error: BaseException | None = None
        self._done = threading.Event()

    def _finish(self, response: GenerationResponse | None, error: BaseException | None = None) -> None:
        self._response = response
        self._error = error
        self._done.set()

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> GenerationResponse | None:
        """Block until the job finishes and return its response.

        Returns None if the job was superseded by a newer request (its result
        was discarded) or if *timeout* expired first.
        """
        if not self._done.wait(timeout):
            return None
        if self._error is not None:
            raise self._error
        if self.superseded:
            return None
        return self._response


class Session:
    """Transient generation state owned by a front end.

    State machine: IDLE -> CONFIGURING(kind) -> GENERATED -> IDLE on reset().
    Every request gets a ticket; only the response of the latest ticket is
    published, and reset() invalidates any request still in flight.
    """

    def __init__(self, pipeline: QRPayloadPipeline | None = None):
        self._pipeline = pipeline or QRPayloadPipeline()
        self._lock = threading.Lock()
        self._ticket = 0
        self.state = SessionState.IDLE
        self.kind = GenerationKind.TEXT
        self.response: GenerationResponse | None = None
        self.last_error: str | None = None

    def configure(self, kind: GenerationKind) -> None:
        """Pick what to generate from.

        While a result is shown the kind is locked: configuring the same kind
        is a no-op, switching to another one requires reset().
        """
        with self._lock:
            self._check_kind(kind)
            if self.state is SessionState.GENERATED:
                return
            self.kind = kind
            self.state = SessionState.CONFIGURING

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run a request synchronously and publish its result.

        From GENERATED, a request of the same kind regenerates in place: the
        shown result is replaced only if the new one succeeds. A request of
        another kind raises RuntimeError until reset() is called.
        """
        ticket = self._begin(request)
        response = run_request(request, self._pipeline)
        self._publish(ticket, response)
        return response

    def submit(self, request: GenerationRequest) -> GenerationJob:
        """Run a request on a worker thread.

        Submitting again before the job finishes supersedes it: the older
        job's response is discarded when it completes.
        """
        job = GenerationJob(self._begin(request))

        def _run():
            try:
                response = run_request(request, self._pipeline)
            except Exception as e:
                job._finish(None, e)
                return
            job.superseded = not self._publish(job.ticket, response)
            job._finish(response)

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        return job

    def reset(self) -> None:
        """Drop the current result and return to IDLE."""
        with self._lock:
            self._ticket += 1
            self.state = SessionState.IDLE
            self.response = None
            self.last_error = None

    def _check_kind(self, kind: GenerationKind) -> None:
        if self.state is SessionState.GENERATED and kind is not self.kind:
            raise RuntimeError("Reset the session before switching to a new kind of request.")

    def _begin(self, request: GenerationRequest) -> int:
        with self._lock:
            self._check_kind(request.kind)
            self._ticket += 1
            self.kind = request.kind
            if self.state is SessionState.IDLE:
                self.state = SessionState.CONFIGURING
            return self._ticket

    def _publish(self, ticket: int, response: GenerationResponse) -> bool:
        with self._lock:
            if ticket != self._ticket:
                logger.debug("Discarding result of superseded request %d", ticket)
                return False

            if response.error is not None:
                # Keep the previous result until the user retries
                self.last_error = response.error
            elif response.qr_image is not None:
                self.response = response
                self.state = SessionState.GENERATED
                self.last_error = None
            return True
