from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    icon: str
    system_instruction: str
    description: str


@dataclass(frozen=True)
class VoiceDescriptor:
    id: str
    gender: str
    style: str


PERSONAS: tuple[Persona, ...] = (
    Persona(
        id="default",
        name="Helpful Assistant",
        icon="Bot",
        description="Versatile and balanced",
        system_instruction=(
            "You are a helpful and versatile AI assistant. You provide clear, concise, and accurate answers. "
            "Use formatting like Markdown to make your responses easy to read."
        ),
    ),
    Persona(
        id="coder",
        name="Coding Guru",
        icon="Terminal",
        description="Expert in software engineering",
        system_instruction=(
            "You are an expert Senior Software Engineer. You write clean, efficient, and well-documented code. "
            "You prefer Python and type-annotated code. Always explain your code choices."
        ),
    ),
    Persona(
        id="creative",
        name="Storyteller",
        icon="Feather",
        description="Imaginative and descriptive",
        system_instruction=(
            "You are a creative writer and storyteller. You use vivid imagery, metaphors, and engaging narratives. "
            "Your tone is expressive and captivating."
        ),
    ),
    Persona(
        id="analyst",
        name="Data Analyst",
        icon="BarChart",
        description="Logical and data-driven",
        system_instruction=(
            "You are a data analyst. You prefer structured data, tables, and logical reasoning. "
            "You break down complex problems into step-by-step analysis."
        ),
    ),
)

VOICES: tuple[VoiceDescriptor, ...] = (
    VoiceDescriptor(id="Puck", gender="Male", style="Energetic"),
    VoiceDescriptor(id="Charon", gender="Male", style="Deep"),
    VoiceDescriptor(id="Kore", gender="Female", style="Balanced"),
    VoiceDescriptor(id="Fenrir", gender="Male", style="Authoritative"),
    VoiceDescriptor(id="Zephyr", gender="Female", style="Calm"),
)

DEFAULT_PERSONA_ID = "default"
DEFAULT_VOICE_ID = "Kore"

# Built-in OpenAI TTS voices; catalog voices outside this set use the configured default.
OPENAI_TTS_VOICE_PRESETS = frozenset(
    {
        "alloy",
        "ash",
        "ballad",
        "coral",
        "echo",
        "sage",
        "shimmer",
        "verse",
    }
)


def get_persona(persona_id: str) -> Persona:
    pid = str(persona_id or "").strip().lower()
    for p in PERSONAS:
        if p.id == pid:
            return p
    raise KeyError(f"Unknown persona: {persona_id!r}")


def get_voice(voice_id: str) -> VoiceDescriptor:
    # Voice names are matched case-insensitively ("kore" == "Kore").
    vid = str(voice_id or "").strip().lower()
    for v in VOICES:
        if v.id.lower() == vid:
            return v
    raise KeyError(f"Unknown voice: {voice_id!r}")
