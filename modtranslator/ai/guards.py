"""
Prompt Guards

Builds the system and user prompts sent to providers. The system prompt lists
the protected markers of the segment and the rules for keeping them intact,
plus game-specific constraints for the selected profile.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

PROFILE_CONSTRAINTS = {
    "rimworld": [
        "RimWorld: {PAWN_*} tokens have fixed spelling - never translate or modify.",
        "RimWorld: <color=#...> tags can be nested - preserve structure.",
    ],
    "factorio": [
        "Factorio: Maintain __1__, __2__, etc. in sequential order.",
        "Factorio: __ENTITY__* and __control__* names are exact - do not auto-correct.",
        "Factorio: [color=]...[/color] blocks must be balanced.",
    ],
    "minecraft": [
        "Minecraft: Cannot convert %s to {0} or vice versa - preserve format type.",
        "Minecraft: § color codes must stay at text boundaries.",
    ],
}

TRANSLATION_RULES = [
    "Translation rules:",
    "- Translate ONLY natural language text between tokens.",
    "- Do NOT modify, reorder, or remove any tokens.",
    "- Do NOT change units, symbols, or numbers.",
    "- Preserve all whitespace around tokens.",
]


@dataclass
class TranslationConstraints:
    preserve_tokens: bool = True
    enforce_token_order: bool = True
    preserve_percent_binding: bool = True
    protect_special_blocks: bool = True
    profile_constraints: List[str] = field(default_factory=list)

    @classmethod
    def for_profile(cls, profile: Optional[str]) -> "TranslationConstraints":
        """Default constraints plus the rules for ``profile`` ("none" adds nothing)."""
        constraints = cls()
        constraints.profile_constraints.extend(PROFILE_CONSTRAINTS.get((profile or "").lower(), []))
        return constraints

    def with_constraint(self, constraint: str) -> "TranslationConstraints":
        self.profile_constraints.append(constraint)
        return self

    def to_prompt(self, protected_tokens: Sequence[str]) -> str:
        lines = []

        if self.preserve_tokens:
            lines.append("CRITICAL: Preserve ALL protected tokens exactly as they appear.")
            if protected_tokens:
                lines.append(f"Protected tokens in this text: {', '.join(protected_tokens)}")
                lines.append("These tokens MUST appear in your translation with EXACT same spelling and count.")

        if self.enforce_token_order:
            lines.append("Maintain the relative order of protected tokens.")

        if self.preserve_percent_binding:
            lines.append("Keep format tokens bound to percent signs: {0}% must stay as {0}%, not {0} %.")
            lines.append("Similarly, preserve unit bindings: 16 ms, 60 FPS must maintain the exact spacing and unit.")

        if self.protect_special_blocks:
            lines.append("Do NOT translate content inside ICU MessageFormat blocks {n, plural, ...}.")
            lines.append("Do NOT translate code blocks, LaTeX formulas $...$, or technical expressions.")

        lines.extend(self.profile_constraints)
        lines.append("")
        lines.extend(TRANSLATION_RULES)
        return "\n".join(lines)


def build_system_prompt(
    source_language: str,
    target_language: str,
    constraints: TranslationConstraints,
    protected_tokens: Sequence[str],
) -> str:
    return (
        "You are a professional translator specializing in game mod localization.\n"
        f"Your task is to translate text from {source_language} to {target_language}.\n\n"
        "IMPORTANT CONSTRAINTS:\n"
        f"{constraints.to_prompt(protected_tokens)}\n\n"
        "Provide ONLY the translated text, without any explanations or notes."
    )


def build_user_prompt(text: str, context: Optional[str] = None) -> str:
    if context:
        return f"Context: {context}\n\nText to translate:\n{text}"
    return f"Translate:\n{text}"
