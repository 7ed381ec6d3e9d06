"""Tests for the in-memory sink and decoder."""

from __future__ import annotations

from pathlib import Path

import pytest

from tap_player.errors import DecodeFailureError
from tap_player.services.fake_backend import FakeAudioSink, FakeDecoder
from tap_player.services.playback_backend import AudioSource, SinkError

A = AudioSource(Path("/a.mp3"), 10)
B = AudioSource(Path("/b.mp3"), 20)


def test_sources_finish_by_clock_with_overshoot(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    sink.append(A)
    sink.append(B)

    clock.advance(12)

    assert len(sink) == 1
    assert sink.position_s == 2
    clock.advance(18)
    assert sink.empty()
    assert sink.position_s == 0


def test_pause_freezes_position(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    sink.append(A)
    clock.advance(3)

    sink.pause()
    clock.advance(30)

    assert sink.is_paused
    assert len(sink) == 1
    sink.play()
    clock.advance(1)
    assert sink.position_s == 4


def test_zero_duration_source_never_finishes(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    sink.append(AudioSource(Path("/stream.mp3")))

    clock.advance(10_000)

    assert len(sink) == 1


def test_pop_pending_keeps_audible_head(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    sink.append(A)
    assert sink.pop_pending() is None

    sink.append(B)

    assert sink.pop_pending() == B
    assert len(sink) == 1


def test_seek_requires_audible_source(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    with pytest.raises(SinkError):
        sink.try_seek(5)

    sink.append(A)
    sink.try_seek(-3)

    assert sink.seeks == [0.0]


def test_closed_sink_rejects_appends(clock) -> None:
    sink = FakeAudioSink(clock=clock)
    sink.append(A)

    sink.close()

    assert sink.empty()
    with pytest.raises(SinkError):
        sink.append(B)


def test_fake_decoder_durations_and_failures() -> None:
    decoder = FakeDecoder(durations={A.path: 42}, failing=[B.path])

    assert decoder(A.path) == AudioSource(A.path, 42)
    assert decoder(Path("/c.mp3")).duration_s == 0
    with pytest.raises(DecodeFailureError):
        decoder(B.path)
    assert decoder.opened == [A.path, Path("/c.mp3")]
