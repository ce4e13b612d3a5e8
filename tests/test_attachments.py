import numpy as np
import pytest

from studio_engine.errors import MicrophonePermissionError
from studio_engine.logging.events import EventLogger
from studio_engine.media.attachments import MicrophoneRecorder, attachment_from_bytes, load_attachment
from studio_engine.media.codec import decode_audio

from tests.common import CollectingNotifier, FakeInputFactory


def test_attachment_from_bytes_classifies() -> None:
    assert attachment_from_bytes(b"x", "image/png").kind == "image"
    assert attachment_from_bytes(b"x", "audio/webm").kind == "audio"


@pytest.mark.asyncio
async def test_load_attachment_reads_file(tmp_path) -> None:
    p = tmp_path / "cube.png"
    p.write_bytes(b"\x89PNG\r\n")
    att = await load_attachment(p)
    assert att.data == b"\x89PNG\r\n"
    assert att.mime_type == "image/png"
    assert att.kind == "image"


@pytest.mark.asyncio
async def test_load_attachment_explicit_mime(tmp_path) -> None:
    p = tmp_path / "memo.bin"
    p.write_bytes(b"\x1aE\xdf\xa3")
    att = await load_attachment(p, "audio/webm")
    assert att.kind == "audio"


def test_recorder_produces_wav_attachment(tmp_path) -> None:
    factory = FakeInputFactory()
    logger = EventLogger(path=tmp_path / "events.jsonl")
    rec = MicrophoneRecorder(notifier=CollectingNotifier(), stream_factory=factory, logger=logger)

    assert rec.start() is True
    assert rec.is_recording
    factory.streams[0].on_chunk(np.full((800, 1), 1000, dtype=np.int16))
    factory.streams[0].on_chunk(np.full((800, 1), 1000, dtype=np.int16))
    att = rec.stop()

    assert not rec.is_recording
    assert factory.streams[0].stopped and factory.streams[0].closed
    assert att is not None
    assert (att.mime_type, att.kind) == ("audio/wav", "audio")
    samples = decode_audio(att.data, att.mime_type, target_rate=16000)
    assert samples.size == 1600
    assert "recording_finished" in (tmp_path / "events.jsonl").read_text(encoding="utf-8")


def test_start_while_recording_is_a_noop() -> None:
    factory = FakeInputFactory()
    rec = MicrophoneRecorder(notifier=CollectingNotifier(), stream_factory=factory)
    assert rec.start() is True
    assert rec.start() is True
    assert len(factory.streams) == 1


def test_stop_when_idle_returns_none() -> None:
    rec = MicrophoneRecorder(notifier=CollectingNotifier(), stream_factory=FakeInputFactory())
    assert rec.stop() is None


def test_empty_recording_still_yields_valid_wav() -> None:
    factory = FakeInputFactory()
    rec = MicrophoneRecorder(notifier=CollectingNotifier(), stream_factory=factory)
    rec.start()
    att = rec.stop()
    assert att is not None
    assert att.data[:4] == b"RIFF"


def test_microphone_denied_alerts_once() -> None:
    notifier = CollectingNotifier()
    factory = FakeInputFactory(error=MicrophonePermissionError("denied"))
    rec = MicrophoneRecorder(notifier=notifier, stream_factory=factory)

    assert rec.start() is False
    assert not rec.is_recording
    assert notifier.messages == ["Could not access microphone. Please check permissions."]
    assert factory.streams == []
    assert rec.stop() is None


@pytest.mark.asyncio
async def test_picked_webm_recording_is_audio(tmp_path) -> None:
    p = tmp_path / "clip.webm"
    p.write_bytes(b"\x1aE\xdf\xa3")
    att = await load_attachment(p)
    assert att.mime_type == "audio/webm"
    assert att.kind == "audio"
