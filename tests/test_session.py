"""Tests for request/response handling, the session state machine and the CLI."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from PIL import Image

from qrmatrix.cli import main
from qrmatrix.image_utils import ResizeStatus
from qrmatrix.palette import Symbol
from qrmatrix.qr_generator import QRCodeEncoder, QRPayloadPipeline
from qrmatrix.session import (
    GenerationKind,
    GenerationRequest,
    GenerationResponse,
    Session,
    SessionState,
    run_request,
)

TOO_LONG = "x" * 3000


class BlockingPipeline(QRPayloadPipeline):
    """Holds the payload "slow" until released."""

    def __init__(self) -> None:
        super().__init__(QRCodeEncoder())
        self.started = threading.Event()
        self.release = threading.Event()

    def generate(self, payload):
        if payload == "slow":
            self.started.set()
            assert self.release.wait(5)
        return super().generate(payload)


@pytest.fixture
def pipeline() -> QRPayloadPipeline:
    return QRPayloadPipeline(QRCodeEncoder())


@pytest.fixture
def red_png(tmp_path: Path) -> Path:
    p = tmp_path / "red.png"
    Image.new("RGB", (32, 32), (255, 0, 0)).save(p)
    return p


# -- run_request -------------------------------------------------------

class TestRunRequest:
    def test_text(self, pipeline: QRPayloadPipeline) -> None:
        response = run_request(GenerationRequest.for_text("HELLO"), pipeline)
        assert response.ok
        assert response.pixel_art == ""
        assert response.resize_status is None

    def test_empty_text(self, pipeline: QRPayloadPipeline) -> None:
        response = run_request(GenerationRequest.for_text(""), pipeline)
        assert response == GenerationResponse()
        assert not response.ok

    def test_image(self, pipeline: QRPayloadPipeline) -> None:
        image = Image.new("RGBA", (1, 1), (255, 0, 0, 255))
        response = run_request(GenerationRequest.for_image(image), pipeline)
        assert response.ok
        assert response.resize_status is ResizeStatus.RESIZED
        assert response.pixel_art == (Symbol.RED.glyph * 15 + "\n") * 15
        expected = pipeline.generate(response.pixel_art)
        assert response.qr_image.tobytes() == expected.tobytes()

    def test_image_missing(self, pipeline: QRPayloadPipeline) -> None:
        request = GenerationRequest(kind=GenerationKind.IMAGE)
        assert run_request(request, pipeline) == GenerationResponse()

    def test_failure_has_no_image(self, pipeline: QRPayloadPipeline) -> None:
        response = run_request(GenerationRequest.for_text(TOO_LONG), pipeline)
        assert response.qr_image is None
        assert "too long" in response.error


# -- Session -----------------------------------------------------------

class TestSession:
    def test_lifecycle(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        assert session.state is SessionState.IDLE

        session.configure(GenerationKind.TEXT)
        assert session.state is SessionState.CONFIGURING

        response = session.generate(GenerationRequest.for_text("HELLO"))
        assert session.state is SessionState.GENERATED
        assert session.response is response

        session.reset()
        assert session.state is SessionState.IDLE
        assert session.response is None

    def test_configure_while_generated(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        session.generate(GenerationRequest.for_text("HELLO"))
        with pytest.raises(RuntimeError):
            session.configure(GenerationKind.IMAGE)

    def test_switching_kind_requires_reset(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        session.generate(GenerationRequest.for_text("HELLO"))
        image = Image.new("RGB", (4, 4), (255, 0, 0))

        with pytest.raises(RuntimeError):
            session.generate(GenerationRequest.for_image(image))
        with pytest.raises(RuntimeError):
            session.submit(GenerationRequest.for_image(image))

        session.reset()
        assert session.generate(GenerationRequest.for_image(image)).ok
        assert session.kind is GenerationKind.IMAGE

    def test_same_kind_regenerates_in_place(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        session.generate(GenerationRequest.for_text("HELLO"))
        session.configure(GenerationKind.TEXT)
        assert session.state is SessionState.GENERATED

        second = session.generate(GenerationRequest.for_text("HELLO again"))
        assert session.state is SessionState.GENERATED
        assert session.response is second

    def test_empty_text_stays_configuring(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        session.generate(GenerationRequest.for_text(""))
        assert session.state is SessionState.CONFIGURING
        assert session.response is None
        assert session.last_error is None

    def test_error_keeps_previous_result(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        first = session.generate(GenerationRequest.for_text("HELLO"))
        session.generate(GenerationRequest.for_text(TOO_LONG))

        assert session.response is first
        assert session.state is SessionState.GENERATED
        assert "too long" in session.last_error

        session.generate(GenerationRequest.for_text("HELLO again"))
        assert session.last_error is None

    def test_submit(self, pipeline: QRPayloadPipeline) -> None:
        session = Session(pipeline)
        job = session.submit(GenerationRequest.for_text("HELLO"))
        response = job.wait(5)
        assert job.done()
        assert response.ok
        assert session.response is response

    def test_newer_request_supersedes_older(self) -> None:
        pipeline = BlockingPipeline()
        session = Session(pipeline)

        slow = session.submit(GenerationRequest.for_text("slow"))
        assert pipeline.started.wait(5)
        fast = session.submit(GenerationRequest.for_text("fast"))
        fast_response = fast.wait(5)

        pipeline.release.set()
        assert slow.wait(5) is None
        assert slow.superseded
        assert not fast.superseded
        assert session.response is fast_response

    def test_reset_discards_in_flight(self) -> None:
        pipeline = BlockingPipeline()
        session = Session(pipeline)

        job = session.submit(GenerationRequest.for_text("slow"))
        assert pipeline.started.wait(5)
        session.reset()
        pipeline.release.set()

        assert job.wait(5) is None
        assert session.state is SessionState.IDLE
        assert session.response is None

    def test_worker_exception_is_raised_on_wait(
        self, pipeline: QRPayloadPipeline, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def boom(payload):
            raise RuntimeError("encoder crashed")

        monkeypatch.setattr(pipeline, "generate", boom)
        job = Session(pipeline).submit(GenerationRequest.for_text("HELLO"))
        with pytest.raises(RuntimeError, match="encoder crashed"):
            job.wait(5)


# -- CLI ---------------------------------------------------------------

class TestCli:
    def test_text(self, tmp_path: Path) -> None:
        out = tmp_path / "qr.png"
        assert main(["--text", "HELLO", "-o", str(out), "--no-verify"]) == 0
        assert out.exists()
        with Image.open(out) as img:
            assert img.size == (290, 290)  # (21 + 2 * 4) modules at 10x

    def test_image(self, tmp_path: Path, red_png: Path, capsys: pytest.CaptureFixture) -> None:
        out = tmp_path / "art.png"
        code = main(["--image", str(red_png), "-o", str(out), "--no-verify", "--backend", "segno"])
        assert code == 0
        assert out.exists()
        assert Symbol.RED.glyph * 15 in capsys.readouterr().out

    def test_missing_image(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        code = main(["--image", str(tmp_path / "nope.png"), "-o", str(tmp_path / "x.png")])
        assert code == 1
        assert "Image not found" in capsys.readouterr().err

    def test_too_long(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        out = tmp_path / "x.png"
        assert main(["--text", TOO_LONG, "-o", str(out)]) == 1
        assert not out.exists()
        assert "too long" in capsys.readouterr().err

    def test_requires_input(self) -> None:
        with pytest.raises(SystemExit):
            main([])
