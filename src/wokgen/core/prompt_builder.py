"""Prompt synthesis for animation frames.

Every frame of an animation is generated from its own text prompt.  The
prompt is composed from a shared base (the user's concept plus style and
asset metadata) and a per-frame motion directive taken from the animation
category's keyframe phases.  All frames of one request share the same
negative prompt.

Prompt Structure
----------------
::

    [WxH pixel art header], [user concept], [style preset tokens],
    [asset category tokens], [era palette], [background tokens],
    [outline tokens], [pixel art quality tokens],
    [animation: category], [phase directive], [frame i of n]

Sections are comma-separated tokens.  Duplicate tokens (compared
case-insensitively) are dropped while preserving first occurrence order,
so a style preset that repeats a quality token does not inflate the prompt.

The ``lightweight`` option trims the quality token bank for providers that
take the prompt in a URL and therefore have a length limit.

Usage
-----
::

    opts = PromptOptions(user_prompt="a goblin knight", asset_category="character")
    negative = build_negative_prompt(opts)
    prompts = [build_frame_prompt(opts, "walk", i, 8) for i in range(8)]
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Token banks.
# ---------------------------------------------------------------------------

STYLE_PRESET_TOKENS: dict[str, str] = {
    "rpg_icon": (
        "game inventory icon, RPG item, dark background, bold readable silhouette, "
        "crisp outlines, centered on canvas, single object"
    ),
    "emoji": (
        "emoji icon, bright saturated colors, simple bold shape, no background, "
        "very small scale readability, clean linework"
    ),
    "tileset": (
        "seamless tile, flat top-down perspective, repeating texture, no visible seams, "
        "game tileset"
    ),
    "raw": "",
    "character_idle": (
        "standing character pose, front-facing, centered on canvas, full body visible, "
        "consistent proportions, game sprite, idle stance"
    ),
    "character_side": (
        "side-scrolling character, lateral side view, profile facing right, full body, "
        "platformer game sprite, grounded stance"
    ),
    "top_down_char": (
        "top-down view character, bird eye perspective, overhead angle, RPG character"
    ),
    "isometric": (
        "isometric perspective, 2:1 dimetric projection, 3/4 view, isometric game asset"
    ),
    "chibi": (
        "chibi style, super-deformed proportions, oversized head, small body, "
        "cute and expressive, round features"
    ),
    "horror": (
        "dark horror style, desaturated muted palette, high contrast shadows, "
        "creepy atmosphere, ominous"
    ),
    "sci_fi": (
        "sci-fi futuristic style, metallic surfaces, neon accent colors, "
        "clean geometric shapes"
    ),
    "animated_effect": (
        "particle effect sprite, bright vivid colors, high contrast, magic or elemental "
        "visual, designed for loop animation, transparent-ready"
    ),
    "portrait": (
        "character portrait, bust shot, face and upper body, expressive features, "
        "centered composition"
    ),
    "weapon_icon": (
        "weapon close-up, single weapon, game inventory icon, centered and upright, "
        "iconic silhouette, no hands"
    ),
}

ASSET_CATEGORY_TOKENS: dict[str, str] = {
    "character": "single character, centered composition, full body view",
    "enemy": "enemy character sprite, menacing pose, centered",
    "npc": "non-player character sprite, friendly appearance, centered",
    "boss": "boss enemy sprite, large imposing figure",
    "item": "single item, centered, small object, game item icon",
    "weapon": "single weapon, centered, game item icon",
    "tile": "tile, seamless edges, consistent scale",
    "effect": "particle or magic effect, bright colors, looping-ready",
    "ui": "game HUD element, flat pixel art, icon",
}

ERA_PALETTES: dict[str, str] = {
    "nes": "NES palette",
    "gameboy": "4-shade monochrome Game Boy palette",
    "snes": "16-bit SNES palette",
    "gba": "32-bit GBA palette",
    "modern": "modern 32-bit game palette",
}

BACKGROUND_TOKENS: dict[str, str] = {
    "transparent": "transparent background, isolated sprite",
    "dark": "dark atmospheric background",
    "scene": "full environmental background, game scene",
}

OUTLINE_TOKENS: dict[str, str] = {
    "bold": "bold dark outline",
    "thin": "thin clean outline",
    "none": "no outline, selective shading",
    "colored": "colored outline, sel-out shading",
}

# Keyframe phases per animation category.  A frame takes the phase whose
# slice of the cycle contains it, so frame counts above the number of
# phases hold each phase for several consecutive frames.
MOTION_PHASES: dict[str, tuple[str, ...]] = {
    "idle": (
        "neutral standing pose",
        "slight inhale, chest raised",
        "neutral standing pose",
        "slight exhale, shoulders lowered",
    ),
    "walk": (
        "contact pose, left foot forward",
        "down pose, weight on left leg",
        "passing pose, right leg swinging",
        "up pose, right foot lifting",
        "contact pose, right foot forward",
        "down pose, weight on right leg",
        "passing pose, left leg swinging",
        "up pose, left foot lifting",
    ),
    "run": (
        "push off, body leaning forward",
        "airborne, legs extended",
        "landing on front foot",
        "recoil, knees bent",
    ),
    "attack": (
        "anticipation, weapon drawn back",
        "wind-up, body coiled",
        "strike, weapon swinging forward",
        "impact, full extension",
        "follow through",
        "recovery, returning to stance",
    ),
    "jump": (
        "crouch, knees bent",
        "take off, legs extending",
        "rising, arms up",
        "apex, body tucked",
        "falling, legs reaching down",
        "landing, knees absorbing",
    ),
    "cast": (
        "hands gathering energy",
        "glowing aura forming",
        "arms raised, energy peak",
        "release, spell projected forward",
    ),
    "hurt": (
        "recoiling from a hit",
        "flinching, eyes closed",
        "recovering balance",
    ),
    "death": (
        "staggering",
        "knees buckling",
        "falling backwards",
        "collapsed on the ground",
    ),
    "effect": (
        "small spark, effect beginning",
        "expanding burst",
        "peak intensity",
        "dissipating particles",
    ),
    "float": (
        "hovering at rest",
        "drifting upward",
        "hovering at the top",
        "drifting downward",
    ),
}

_QUALITY_TOKENS: tuple[str, ...] = (
    "hard pixel edges",
    "no anti-aliasing",
    "crisp pixel grid",
    "game sprite",
    "masterful pixel art",
)

_LIGHTWEIGHT_QUALITY_TOKENS: tuple[str, ...] = (
    "hard pixel edges",
    "crisp pixel grid",
)

_NEGATIVE_BANK: tuple[str, ...] = (
    "photorealistic",
    "photograph",
    "3d render",
    "realistic",
    "smooth gradient",
    "anti-aliased",
    "blurry",
    "soft edges",
    "watercolor",
    "oil painting",
    "sketch",
    "multiple characters",
    "duplicate",
    "extra limbs",
    "deformed",
    "text",
    "watermark",
    "signature",
    "frame",
    "border",
    "grid lines",
)

_ERA_NEGATIVES: dict[str, tuple[str, ...]] = {
    "nes": ("high color count", "gradients"),
    "gameboy": ("color", "saturated colors"),
    "snes": ("3d shading",),
}

_CATEGORY_NEGATIVES: dict[str, tuple[str, ...]] = {
    "character": ("cropped body", "cut off limbs"),
    "item": ("hands", "character"),
    "weapon": ("hands", "character"),
    "tile": ("perspective distortion", "visible seams"),
    "effect": ("solid background",),
}


@dataclass
class PromptOptions:
    """Base prompt options shared by every frame of one request.

    Style and asset metadata are optional; unknown values are passed
    through verbatim as free-text tokens instead of being rejected, since
    they only steer the image model.

    Attributes:
        user_prompt: The user's concept, already trimmed.
        style_preset: Style preset key (see :data:`STYLE_PRESET_TOKENS`).
        asset_category: Asset category key.
        pixel_era: Era key controlling the palette descriptor.
        background_mode: ``transparent``, ``dark`` or ``scene``.
        outline_style: ``bold``, ``thin``, ``none`` or ``colored``.
        palette_size: Desired palette size hint.
        width: Target frame width in pixels.
        height: Target frame height in pixels.
        lightweight: Use the compact quality token bank.
        user_negative: Extra negative terms supplied by the caller.
    """

    user_prompt: str
    style_preset: str | None = None
    asset_category: str | None = None
    pixel_era: str | None = None
    background_mode: str | None = "transparent"
    outline_style: str | None = "bold"
    palette_size: int | None = 32
    width: int = 128
    height: int = 128
    lightweight: bool = True
    user_negative: str | None = None


def _lookup(table: dict[str, str], key: str | None) -> str:
    """Return the tokens for *key*, or the key itself when it is unknown."""
    if not key:
        return ""
    return table.get(key, key.replace("_", " "))


def _dedupe_tokens(parts: list[str]) -> str:
    """Split comma-separated parts into tokens and drop repeats."""
    seen: set[str] = set()
    tokens: list[str] = []
    for part in parts:
        for raw in part.split(","):
            token = raw.strip()
            key = token.lower()
            if token and key not in seen:
                seen.add(key)
                tokens.append(token)
    return ", ".join(tokens)


def build_prompt(opts: PromptOptions) -> str:
    """Compile the shared base prompt for a request.

    Args:
        opts: Base prompt options.

    Returns:
        Comma-separated prompt text.
    """
    parts: list[str] = [f"{opts.width}x{opts.height} pixel art"]

    # The user's concept is the creative core and always comes first.
    if opts.user_prompt.strip():
        parts.append(opts.user_prompt.strip())

    parts.append(_lookup(STYLE_PRESET_TOKENS, opts.style_preset))
    parts.append(_lookup(ASSET_CATEGORY_TOKENS, opts.asset_category))

    era = ERA_PALETTES.get(opts.pixel_era or "")
    palette = f"limited {opts.palette_size} color palette" if opts.palette_size else ""
    parts.append(", ".join(p for p in (era, palette) if p))

    parts.append(_lookup(BACKGROUND_TOKENS, opts.background_mode))
    parts.append(_lookup(OUTLINE_TOKENS, opts.outline_style))

    quality = _LIGHTWEIGHT_QUALITY_TOKENS if opts.lightweight else _QUALITY_TOKENS
    parts.extend(quality)

    return _dedupe_tokens(parts)


def motion_phase(animation_type: str, index: int, total: int) -> str:
    """Return the keyframe phase directive for frame *index* of *total*.

    The category's phases are spread evenly over the frame count.  Unknown
    categories use the ``idle`` phases.

    Args:
        animation_type: Animation category.
        index: Zero-based frame index.
        total: Total number of frames in the cycle.

    Returns:
        Phase description for the frame.
    """
    phases = MOTION_PHASES.get(animation_type, MOTION_PHASES["idle"])
    total = max(1, total)
    slot = min(len(phases) - 1, index * len(phases) // total)
    return phases[slot]


def build_frame_prompt(opts: PromptOptions, animation_type: str, index: int, total: int) -> str:
    """Compile the prompt for one frame of an animation.

    Args:
        opts: Base prompt options shared by the request.
        animation_type: Animation category, e.g. ``"walk"``.
        index: Zero-based frame index.
        total: Total number of generated frames.

    Returns:
        The base prompt followed by the motion directive for the frame.
    """
    directive = [
        f"{animation_type.replace('_', ' ')} animation",
        motion_phase(animation_type, index, total),
        f"frame {index + 1} of {total}",
        "consistent character design across frames",
    ]
    return _dedupe_tokens([build_prompt(opts), *directive])


def build_negative_prompt(opts: PromptOptions) -> str:
    """Compile the negative prompt shared by all frames of a request.

    Args:
        opts: Base prompt options; only the era, category and user
            negative terms are used.

    Returns:
        Comma-separated negative prompt.
    """
    parts: list[str] = list(_NEGATIVE_BANK)
    parts.extend(_ERA_NEGATIVES.get(opts.pixel_era or "", ()))
    parts.extend(_CATEGORY_NEGATIVES.get(opts.asset_category or "", ()))
    if opts.user_negative:
        parts.append(opts.user_negative)
    return _dedupe_tokens(parts)
