"""Centralized constants for the Jarvis voice engine.

All magic numbers and timeout values should be defined here for easy maintenance.
"""

# Transcoding target (what the recognizer is configured for)
TARGET_SAMPLE_RATE: int = 48_000  # Browser MediaRecorder captures at 48 kHz
TARGET_CHANNELS: int = 1
TARGET_ENCODING: str = "linear16"
SOURCE_FORMAT: str = "webm"  # MediaRecorder default container

# Recognition / synthesis
DEFAULT_LANGUAGE: str = "en-US"
TTS_SAMPLE_RATE: int = 24_000
TTS_ENCODING: str = "pcm_s16le"

# Stage timeouts (seconds)
TRANSCODE_TIMEOUT: float = 15.0
STT_TIMEOUT: float = 30.0
GENERATION_TIMEOUT: float = 30.0
SYNTHESIS_TIMEOUT: float = 30.0
LOCAL_STAT_TIMEOUT: float = 5.0

# Per-session concurrency
MAX_INFLIGHT_UTTERANCES: int = 4  # 1 == strict sequencing

# Transient artifact storage
ARTIFACT_TTL: float = 300.0  # 5 minutes before an orphaned artifact is collected
ARTIFACT_SWEEP_INTERVAL: float = 60.0

# WebSocket
WEBSOCKET_RECEIVE_TIMEOUT: float = 30.0  # Main receive loop timeout

# Model settings
DEFAULT_MODEL: str = "claude-haiku-4-5"
MODEL_MAX_TOKENS: int = 512
SYSTEM_PROMPT: str = (
    "You are a friendly and conversational AI assistant. "
    "Keep your responses concise and natural."
)

# Greeting
DEFAULT_ASSISTANT_NAME: str = "Jarvis"
