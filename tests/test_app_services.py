from __future__ import annotations

from argparse import Namespace

import pytest

from parley.app import services as app_services
from parley.asr.remote import RemoteTranscriber
from parley.nlp.translator.argos import ArgosTranslator
from parley.nlp.translator.remote import RemoteTranslator
from parley.remote.client import ServiceClient


def _args(backend: str = "remote", translator: str = "remote", **overrides) -> Namespace:
    values = dict(
        block_sec=0.05,
        sr=16000,
        channels=1,
        device=None,
        output_device=None,
        environment="quiet",
        silence_threshold=None,
        silence_timeout=None,
        smoothing_time_constant=None,
        min_segment_sec=0.5,
        backend=backend,
        service_url="http://127.0.0.1:3000/",
        request_timeout_sec=5.0,
        model="base",
        translator=translator,
    )
    values.update(overrides)
    return Namespace(**values)


def test_build_transcriber_local(monkeypatch) -> None:
    captured: dict[str, object] = {}

    class _FakeTranscriber:
        def __init__(self, *, model_size: str):
            captured["model_size"] = model_size

    monkeypatch.setattr(app_services, "FasterWhisperSegmentTranscriber", _FakeTranscriber)
    out = app_services.build_transcriber(_args(backend="local", model="small"), ServiceClient("http://x"))
    assert isinstance(out, _FakeTranscriber)
    assert captured["model_size"] == "small"


def test_build_transcriber_unknown_backend() -> None:
    with pytest.raises(ValueError):
        app_services.build_transcriber(_args(backend="cloud"), ServiceClient("http://x"))


def test_build_services_remote_stack() -> None:
    services = app_services.build_services(_args(silence_timeout=2.0))
    assert isinstance(services.transcriber, RemoteTranscriber)
    assert isinstance(services.translator, RemoteTranslator)
    assert services.client.base_url == "http://127.0.0.1:3000"
    assert services.session.min_bytes == 44 + 16000
    assert services.vad.settings.silence_timeout == 2.0
    assert services.mic.sample_rate == 16000
    assert not services.mic.is_open


def test_build_services_argos_translator() -> None:
    services = app_services.build_services(_args(translator="argos"))
    assert isinstance(services.translator, ArgosTranslator)
