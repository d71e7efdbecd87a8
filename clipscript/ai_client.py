"""Generative AI client for ClipScript: scripts, viral metadata and speech."""
import json
import logging
from abc import ABC, abstractmethod
from typing import Literal, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from clipscript.audio import decode_base64_audio
from clipscript.db.models import GeneratedContent


logger = logging.getLogger(__name__)

StoryType = Literal[
    "Short story",
    "Movie scene",
    "Dialogue",
    "Voice-over",
    "TikTok/Reels",
    "Love Story",
    "Horror Story",
    "Kids Story",
    "Viral Strategist",
]
Mood = Literal["Happy", "Sad", "Romantic", "Horror", "Motivational"]
Language = Literal["English", "Simple English", "Urdu"]
Length = Literal["Short", "Medium", "Long"]
GenMode = Literal["new", "rewrite", "continue"]

# Prebuilt TTS voices
VOICES = {
    "Kore": "Warm Male",
    "Puck": "Playful Female",
    "Charon": "Deep Male",
    "Fenrir": "Active Male",
    "Zephyr": "Soft Female",
}

TYPE_INSTRUCTIONS = {
    "Short story": "FORMAT: Prose. STRUCTURE: Beginning, rising action, climax, and resolution. Focus on vivid descriptions.",
    "Movie scene": "FORMAT: Professional Screenplay. REQUIRED: INT./EXT. sluglines, SCENE HEADINGS, CHARACTER NAMES, and [Parentheticals].",
    "Dialogue": "FORMAT: Script-style Dialogue. Minimize descriptions. Focus 90% on verbal interaction.",
    "Voice-over": "FORMAT: Audio Script. Include time markers (e.g. 0:05) and [SFX] instructions.",
    "TikTok/Reels": "FORMAT: Viral Short Script. REQUIRED: 3-second HOOK, VISUAL cues, and VOICE-OVER lines. End with a CTA.",
    "Love Story": 'FORMAT: Emotional Narrative. Focus on chemistry and the "spark".',
    "Horror Story": "FORMAT: Suspenseful Narrative. Build dread through pacing and sensory isolation.",
    "Kids Story": "FORMAT: Simple Whimsical Prose. Clear moral lesson and colorful descriptions.",
    "Viral Strategist": "FORMAT: High-performance Viral Script. Use psychological triggers and rapid-fire pacing.",
}

TOPIC_VALIDATION_PROMPT = """You are an intelligent assistant for a script generator.
Check if the user input is gibberish, random numbers, or an unsupported/nonsensical topic.
If it is invalid, return is_valid: false and provide 5 relevant creative script topic suggestions.
If it is valid, return is_valid: true.
Ignore filler words. Be friendly and helpful."""


class GenerationSettings(BaseModel):
    """Settings bundle chosen in the generator panel."""
    content_type: StoryType = "Short story"
    mood: Mood = "Happy"
    language: Language = "Simple English"
    length: Length = "Medium"


class TopicValidation(BaseModel):
    """Verdict on whether a prompt is a usable topic."""
    is_valid: bool
    message: Optional[str] = None
    suggestions: list[str] = Field(default_factory=list)


class ViralMetadata(BaseModel):
    titles: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)


class _StoryPayload(BaseModel):
    title: str
    content: str
    viral_titles: list[str]
    hashtags: list[str]


def build_system_instruction(settings: GenerationSettings) -> str:
    """System prompt for script generation."""
    return f"""You are a professional Creative Writer and Viral Strategist.
Current Specialized Model: "{settings.content_type}"
{TYPE_INSTRUCTIONS[settings.content_type]}
Mood: {settings.mood}. Language: {settings.language}. Length: {settings.length}.
Rules:
1. Start with a powerful hook in the first 2-3 lines.
2. Structure output into clear scenes or sections.
3. Use emotional pacing, suspense, and twists.
4. Highlight hooks and key moments.
5. End with a strong closing or twist.

If platform is TikTok/Reels: Add on-screen caption text and voice-over friendly lines.

Along with content, generate:
1. 3 scroll-stopping title variations.
2. 10 trending hashtags.

TASK: Output a JSON object."""


def build_user_prompt(prompt: str, mode: GenMode = "new", context: Optional[str] = None) -> str:
    """User message for the given generation mode."""
    if mode == "new":
        return prompt
    if mode == "rewrite":
        return f"Rewrite: {prompt}. Original: {context or ''}"
    if mode == "continue":
        return f"Continue: {context or ''}"
    raise ValueError(f"Unknown generation mode: {mode}")


def merge_continuation(previous: GeneratedContent, result: GeneratedContent) -> GeneratedContent:
    """Append a continuation to the previous script, keeping its title."""
    return GeneratedContent(
        title=previous.title,
        content=previous.content + "\n\n" + result.content,
        viral_titles=result.viral_titles or previous.viral_titles,
        hashtags=result.hashtags or previous.hashtags,
    )


class ContentGenerator(ABC):
    """Abstract base class for text and speech generation."""

    @abstractmethod
    async def validate_topic(self, prompt: str) -> TopicValidation:
        """Check that a prompt is a usable topic."""

    @abstractmethod
    async def generate_story(
        self,
        prompt: str,
        settings: GenerationSettings,
        mode: GenMode = "new",
        context: Optional[str] = None,
    ) -> GeneratedContent:
        """Generate a script with title variations and hashtags."""

    @abstractmethod
    async def generate_viral_metadata(self, script: str) -> ViralMetadata:
        """Suggest titles and hashtags for an existing script."""

    @abstractmethod
    async def generate_speech(self, text: str, voice: str = "Kore") -> bytes:
        """Synthesize speech, returning raw mono 16-bit PCM."""


class GeminiClient(ContentGenerator):
    """Generator using the Google Gemini API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        tts_model: str = "gemini-2.5-flash-preview-tts",
    ):
        self.client = genai.Client(api_key=api_key)
        self.model_name = model
        self.tts_model_name = tts_model

    async def _generate_json(self, contents: str, schema: type, system_instruction: Optional[str] = None) -> dict:
        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        return json.loads(response.text or "{}")

    async def validate_topic(self, prompt: str) -> TopicValidation:
        try:
            data = await self._generate_json(
                f'Validate this topic: "{prompt}"',
                TopicValidation,
                TOPIC_VALIDATION_PROMPT,
            )
            return TopicValidation.model_validate(data)
        except Exception as e:
            # A validator outage accepts the prompt
            logger.warning("Topic validation unavailable, accepting prompt: %s", e)
            return TopicValidation(is_valid=True)

    async def generate_story(
        self,
        prompt: str,
        settings: GenerationSettings,
        mode: GenMode = "new",
        context: Optional[str] = None,
    ) -> GeneratedContent:
        data = await self._generate_json(
            build_user_prompt(prompt, mode, context),
            _StoryPayload,
            build_system_instruction(settings),
        )
        return GeneratedContent(
            title=data.get("title") or "Untitled",
            content=data.get("content") or "",
            viral_titles=data.get("viral_titles") or [],
            hashtags=data.get("hashtags") or [],
        )

    async def generate_viral_metadata(self, script: str) -> ViralMetadata:
        data = await self._generate_json(
            f"Analyze this script for viral titles and hashtags: {script}",
            ViralMetadata,
        )
        return ViralMetadata.model_validate(data)

    async def generate_speech(self, text: str, voice: str = "Kore") -> bytes:
        response = await self.client.aio.models.generate_content(
            model=self.tts_model_name,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                    ),
                ),
            ),
        )
        if not response.candidates or not response.candidates[0].content:
            return b""
        parts = response.candidates[0].content.parts or []
        if not parts or parts[0].inline_data is None:
            return b""
        data = parts[0].inline_data.data or b""
        if isinstance(data, str):
            return decode_base64_audio(data)
        return data


def create_generator(
    provider: str,
    api_key: str,
    model: Optional[str] = None,
    tts_model: Optional[str] = None,
) -> ContentGenerator:
    """Factory function to create the configured generator."""
    if provider == "gemini":
        return GeminiClient(
            api_key,
            model or "gemini-3-flash-preview",
            tts_model or "gemini-2.5-flash-preview-tts",
        )
    else:
        raise ValueError(f"Unknown AI provider: {provider}")
