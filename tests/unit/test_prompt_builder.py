"""Tests for wokgen.core.prompt_builder: frame prompt synthesis.

Tests cover:
- Base prompt composition (header, user concept, metadata tokens).
- Case-insensitive token de-duplication.
- Motion phase distribution over the frame count.
- Per-frame directives.
- Negative prompt composition.
"""

from __future__ import annotations

from wokgen.core.prompt_builder import (
    MOTION_PHASES,
    PromptOptions,
    build_frame_prompt,
    build_negative_prompt,
    build_prompt,
    motion_phase,
)


class TestBuildPrompt:
    """Test build_prompt()."""

    def test_header_and_concept_come_first(self):
        """The size header is followed by the user's concept."""
        prompt = build_prompt(PromptOptions(user_prompt="a goblin knight", width=64, height=64))
        tokens = prompt.split(", ")
        assert tokens[0] == "64x64 pixel art"
        assert tokens[1] == "a goblin knight"

    def test_known_metadata_expands_to_tokens(self):
        """Known preset, category and era keys become descriptive tokens."""
        prompt = build_prompt(
            PromptOptions(
                user_prompt="slime",
                style_preset="chibi",
                asset_category="enemy",
                pixel_era="gameboy",
            )
        )
        assert "chibi style" in prompt
        assert "enemy character sprite" in prompt
        assert "4-shade monochrome Game Boy palette" in prompt

    def test_unknown_metadata_passes_through(self):
        """Unknown keys are kept as free text with underscores spaced."""
        prompt = build_prompt(PromptOptions(user_prompt="slime", style_preset="neon_noir"))
        assert "neon noir" in prompt

    def test_palette_size_hint(self):
        """The palette size becomes a limited palette token."""
        prompt = build_prompt(PromptOptions(user_prompt="slime", palette_size=16))
        assert "limited 16 color palette" in prompt

    def test_duplicate_tokens_removed(self):
        """Repeated tokens appear once, regardless of case."""
        prompt = build_prompt(PromptOptions(user_prompt="Slime", asset_category="slime"))
        lowered = [token.lower() for token in prompt.split(", ")]
        assert lowered.count("slime") == 1

    def test_lightweight_uses_fewer_quality_tokens(self):
        """The lightweight bank is shorter than the full one."""
        light = build_prompt(PromptOptions(user_prompt="slime", lightweight=True))
        full = build_prompt(PromptOptions(user_prompt="slime", lightweight=False))
        assert len(light) < len(full)
        assert "masterful pixel art" in full
        assert "masterful pixel art" not in light


class TestMotionPhase:
    """Test motion_phase() distribution."""

    def test_one_phase_per_frame_when_counts_match(self):
        """With as many frames as phases each frame gets its own phase."""
        phases = [motion_phase("idle", i, 4) for i in range(4)]
        assert phases == list(MOTION_PHASES["idle"])

    def test_phases_spread_over_fewer_frames(self):
        """Fewer frames than phases sample the cycle evenly."""
        walk = MOTION_PHASES["walk"]
        assert [motion_phase("walk", i, 4) for i in range(4)] == [walk[0], walk[2], walk[4], walk[6]]

    def test_phases_held_over_more_frames(self):
        """More frames than phases hold each phase for several frames."""
        phases = [motion_phase("hurt", i, 12) for i in range(12)]
        assert phases[:4] == [MOTION_PHASES["hurt"][0]] * 4
        assert phases[-1] == MOTION_PHASES["hurt"][-1]

    def test_unknown_category_uses_idle_phases(self):
        """Unknown categories fall back to the idle cycle."""
        assert motion_phase("moonwalk", 0, 4) == MOTION_PHASES["idle"][0]


class TestBuildFramePrompt:
    """Test build_frame_prompt()."""

    def test_frame_directive(self):
        """Each frame prompt carries its category, phase and position."""
        opts = PromptOptions(user_prompt="a goblin knight")
        prompt = build_frame_prompt(opts, "walk", 2, 8)
        assert prompt.startswith(build_prompt(opts).split(", ")[0])
        assert "walk animation" in prompt
        assert MOTION_PHASES["walk"][2] in prompt
        assert "frame 3 of 8" in prompt

    def test_frames_differ(self):
        """Consecutive frames of one request get different prompts."""
        opts = PromptOptions(user_prompt="a goblin knight")
        prompts = {build_frame_prompt(opts, "run", i, 4) for i in range(4)}
        assert len(prompts) == 4


class TestBuildNegativePrompt:
    """Test build_negative_prompt()."""

    def test_shared_bank(self):
        """The pixel-art negative bank is always present."""
        negative = build_negative_prompt(PromptOptions(user_prompt="x"))
        assert "photorealistic" in negative
        assert "blurry" in negative

    def test_era_and_category_terms(self):
        """Era and category add their own terms."""
        negative = build_negative_prompt(
            PromptOptions(user_prompt="x", pixel_era="nes", asset_category="weapon")
        )
        assert "gradients" in negative
        assert "hands" in negative

    def test_user_negative_appended(self):
        """Caller-supplied negative terms are included."""
        negative = build_negative_prompt(PromptOptions(user_prompt="x", user_negative="clouds"))
        assert negative.endswith("clouds")
