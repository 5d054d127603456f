"""Application configuration. Loads from env vars."""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Audio transport: PCM 16-bit mono, 24kHz
    SAMPLE_RATE: int = 24000
    SAMPLE_WIDTH: int = 2  # 16-bit
    CHANNELS: int = 1

    # Stage 1: analysis window handed to the router (80ms @ 24kHz = 1920 samples)
    ANALYSIS_WINDOW_SEC: float = 0.08
    # Stage 2: send-unit accumulated before transmitting to the live session
    SEND_BUFFER_SEC: float = 2.0
    SEND_TIMEOUT_SEC: float = 3.0  # flush a partial send-unit after this long
    # "pcm" = raw PCM with audio/pcm;rate=... annotation, "wav" = 44-byte RIFF header + PCM
    AUDIO_TRANSPORT: Literal["pcm", "wav"] = "pcm"
    AUDIO_OUTBOX_MAX: int = 64  # pending send-units before new ones are dropped

    # Signal analyzer: raw silence statistic (independent of source)
    SILENCE_AMPLITUDE_THRESHOLD: float = 0.005
    # System/speaker playback is louder than close-mic speech, so it gets the stricter gate
    INTERVIEWER_VAD_THRESHOLD: float = 0.01
    INTERVIEWER_MAX_SILENCE_PERCENT: float = 80.0
    INTERVIEWEE_VAD_THRESHOLD: float = 0.003
    INTERVIEWEE_MAX_SILENCE_PERCENT: float = 85.0

    # Source router
    ROUTER_SWITCH_COOLDOWN_SEC: float = 0.2
    ROUTER_ACTIVITY_WINDOW_SEC: float = 2.0
    ROUTER_ACTIVITY_SAMPLES: int = 5  # voiced samples averaged for the incumbent's strength
    ROUTER_CHALLENGER_MIN_CONFIDENCE: float = 0.1
    ROUTER_INCUMBENT_MAX_CONFIDENCE: float = 0.5

    # Microphone (interviewee) capture
    MIC_ENABLED: bool = True
    MIC_GAIN: float = 3.0  # applied before analysis, clamped to [-1, 1]

    # Transcript tagging and context
    TRANSCRIPTION_WINDOW_SEC: float = 240.0  # 4 minutes retained
    SOURCE_QUEUE_MAX: int = 50
    SOURCE_VOTE_WINDOW_SEC: float = 5.0
    CONTEXT_LOOKBACK_SEC: float = 600.0  # manual response looks back 10 minutes
    CONTEXT_MAX_WORDS: int = 1000
    TURN_CONTEXT_WINDOW_SEC: float = 60.0  # transcript saved alongside a conversation turn
    FOCUS_STATEMENTS: int = 3

    # Live session
    LIVE_BACKEND: Literal["gemini", "none"] = "gemini"
    GEMINI_MODEL: str = "gemini-live-2.5-flash-preview"
    GOOGLE_SEARCH_ENABLED: bool = True  # expose the Google Search tool to the live model
    RECONNECT_MAX_ATTEMPTS: int = 3
    RECONNECT_DELAY_SEC: float = 2.0
    RESPONSE_TIMEOUT_SEC: float = 30.0
    SCREENSHOT_WAIT_SEC: float = 2.0  # time given to the screen grabber before prompting
    MIN_IMAGE_BYTES: int = 1000

    # Conversation turns: one .jsonl per session, append-only. Core never writes; the app does.
    CONVERSATION_SAVE_ENABLED: bool = True
    CONVERSATION_DIR: str = "./conversations"

    # Debug: dump every transmitted send-unit as .pcm/.wav/.json
    DEBUG_AUDIO: bool = False
    DEBUG_AUDIO_DIR: str = "./debug_audio"

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path, empty = console only
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
