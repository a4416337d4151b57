from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from parley.app.config import vad_settings_from_args
from parley.asr.base import Transcriber
from parley.asr.faster_whisper_segment import FasterWhisperSegmentTranscriber
from parley.asr.remote import RemoteTranscriber
from parley.audio.mic import Dispatcher, SoundDeviceMicSource
from parley.audio.recorder import RecordingSession
from parley.audio.vad import VoiceActivityDetector
from parley.nlp.language import LanguagePairDetector, RemoteLanguagePairDetector
from parley.nlp.translator.base import Translator
from parley.nlp.translator.factory import get_translator
from parley.remote.client import ServiceClient
from parley.tts.player import AudioOutput, SpeechPlayer
from parley.tts.remote import RemoteSynthesizer


@dataclass(frozen=True)
class ParleyServices:
    mic: SoundDeviceMicSource
    vad: VoiceActivityDetector
    session: RecordingSession
    client: ServiceClient
    transcriber: Transcriber
    detector: LanguagePairDetector
    translator: Translator
    player: SpeechPlayer


def build_transcriber(args: Any, client: ServiceClient) -> Transcriber:
    backend = str(getattr(args, "backend", "remote")).lower()
    if backend == "local":
        return FasterWhisperSegmentTranscriber(model_size=str(args.model))
    if backend == "remote":
        return RemoteTranscriber(client)
    raise ValueError(f"Unknown speech-to-text backend: {backend}")


def build_services(
    args: Any,
    *,
    dispatch: Optional[Dispatcher] = None,
    logger: logging.Logger | None = None,
) -> ParleyServices:
    mic = SoundDeviceMicSource(
        block_seconds=float(args.block_sec),
        sample_rate=int(args.sr),
        channels=int(args.channels),
        device=args.device,
        dispatch=dispatch,
    )
    vad = VoiceActivityDetector(vad_settings_from_args(args))
    session = RecordingSession(mic, min_segment_sec=max(0.0, float(args.min_segment_sec)), logger=logger)
    client = ServiceClient(
        str(args.service_url),
        timeout_seconds=float(args.request_timeout_sec),
        logger=logger,
    )
    player = SpeechPlayer(
        synthesizer=RemoteSynthesizer(client),
        output=AudioOutput(device=getattr(args, "output_device", None)),
        logger=logger,
    )
    return ParleyServices(
        mic=mic,
        vad=vad,
        session=session,
        client=client,
        transcriber=build_transcriber(args, client),
        detector=RemoteLanguagePairDetector(client),
        translator=get_translator(str(args.translator), client=client),
        player=player,
    )
