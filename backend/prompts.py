"""Prompt templates for corporate gift mockup generation"""

import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

BASE_TEMPLATES = {
    "corporate-gift-base": (
        "Create a professional, high-quality mockup of a {productType} as a corporate gift. "
        "The design should be clean, modern, and suitable for business branding. "
        "{qualityModifiers} {styleModifiers} {placementModifiers} "
        "The mockup should showcase the product in an appealing way that demonstrates "
        "its potential as a branded corporate gift."
    ),
    "corporate-gift-premium": (
        "Generate an elegant, premium mockup showcasing a {productType} designed for corporate gifting. "
        "Focus on luxury presentation and professional branding opportunities. "
        "{qualityModifiers} {styleModifiers} {placementModifiers} "
        "The result should convey quality and sophistication suitable for executive gifts."
    ),
}
DEFAULT_TEMPLATE = "corporate-gift-base"

PRODUCT_PROMPTS = {
    "mug": {
        "description": "ceramic coffee mug with smooth finish",
        "materials": ["ceramic", "porcelain", "high-quality glazed finish"],
        "context": "office environment, coffee break, professional setting",
        "branding": "logo placement on side, handle visible, rim clean",
    },
    "tshirt": {
        "description": "premium cotton t-shirt with professional fit",
        "materials": ["100% cotton", "soft fabric texture", "wrinkle-free appearance"],
        "context": "casual office wear, team building, company events",
        "branding": "logo on chest area, clean print application, size appropriate",
    },
    "pen": {
        "description": "elegant ballpoint pen with metallic finish",
        "materials": ["metal body", "smooth writing tip", "comfortable grip"],
        "context": "business meetings, desk accessories, professional writing",
        "branding": "engraved or printed logo, subtle placement, readable text",
    },
    "notebook": {
        "description": "professional bound notebook with clean cover",
        "materials": ["quality paper", "durable binding", "smooth cover surface"],
        "context": "meetings, note-taking, office supplies",
        "branding": "logo on front cover, embossed or printed, professional layout",
    },
    "tote_bag": {
        "description": "canvas tote bag with sturdy construction",
        "materials": ["canvas fabric", "reinforced handles", "durable stitching"],
        "context": "conferences, shopping, daily use, eco-friendly option",
        "branding": "large logo area, screen printing or embroidery, visible placement",
    },
}

PLACEMENT_PROMPTS = {
    "horizontal": "with logo placed horizontally across the center, maintaining readable proportions and professional spacing",
    "vertical": "with logo positioned vertically along the side or in a tall format, creating elegant vertical branding",
    "all_over": "with branding pattern repeated across the entire surface, creating a cohesive branded design",
    "corner": "with logo subtly placed in the corner, creating a sophisticated and understated branded look",
    "center": "with logo prominently centered, creating a bold and professional branded statement",
}

QUALITY_MODIFIERS = {
    "basic": {
        "modifiers": ["clean appearance", "simple lighting", "basic composition"],
        "aspect_ratio": "1:1",
    },
    "enhanced": {
        "modifiers": ["professional lighting", "detailed textures", "refined composition", "subtle shadows"],
        "aspect_ratio": "4:3",
    },
    "premium": {
        "modifiers": ["studio lighting", "ultra-detailed textures", "sophisticated composition",
                      "perfect shadows", "color accuracy"],
        "aspect_ratio": "16:9",
    },
    "ultra": {
        "modifiers": ["cinematic lighting", "photorealistic detail", "artistic composition",
                      "dynamic shadows", "perfect color grading", "8K quality"],
        "aspect_ratio": "21:9",
    },
}
DEFAULT_QUALITY = "enhanced"

STYLE_OPTIONS = {
    "lighting": {
        "natural": "soft natural lighting with gentle shadows",
        "studio": "professional studio lighting with controlled shadows",
        "dramatic": "dramatic lighting with strong contrasts and deep shadows",
    },
    "angle": {
        "front": "straight-on front view showcasing the main branding area",
        "three-quarter": "3/4 angle view showing depth and dimension",
        "overhead": "overhead flat lay view for modern presentation",
    },
    "background": {
        "white": "clean white background for product focus",
        "context": "realistic office or business environment background",
        "gradient": "subtle gradient background in brand colors",
    },
    "mood": {
        "professional": "serious, professional mood suitable for corporate environments",
        "modern": "contemporary, sleek mood with clean lines",
        "warm": "warm, inviting mood that feels approachable",
    },
    "aesthetic": {
        "minimal": "minimalist aesthetic with clean, simple composition",
        "luxury": "luxury aesthetic with premium finishes and elegant presentation",
        "creative": "creative aesthetic with artistic elements and unique presentation",
    },
}

AB_VARIATIONS = [
    {"id": "variation-a-standard", "name": "Standard Corporate",
     "modifiers": ["professional", "clean", "traditional"], "weight": 0.4},
    {"id": "variation-b-modern", "name": "Modern Minimal",
     "modifiers": ["modern", "minimal", "sleek"], "weight": 0.3},
    {"id": "variation-c-premium", "name": "Premium Luxury",
     "modifiers": ["luxury", "premium", "sophisticated"], "weight": 0.3},
]

CATEGORY_PRODUCT_TYPES = {
    "drinkware": "mug",
    "apparel": "tshirt",
    "office": "pen",
    "stationery": "notebook",
    "bags": "tote_bag",
}

NEGATIVE_PROMPT = "blurry, low quality, distorted, watermark, text overlay, poor lighting, artifacts"


@dataclass
class PromptRequest:
    product_type: str
    placement_type: str
    quality_level: str = DEFAULT_QUALITY
    style_preferences: Dict[str, str] = field(default_factory=dict)
    custom_text: Optional[str] = None
    brand_colors: List[str] = field(default_factory=list)
    additional_requirements: List[str] = field(default_factory=list)


@dataclass
class GeneratedPrompt:
    final_prompt: str
    components: dict
    variation: str = "standard"
    confidence: float = 0.0
    estimated_tokens: int = 0

    def to_dict(self):
        return {
            "finalPrompt": self.final_prompt,
            "components": self.components,
            "metadata": {
                "variation": self.variation,
                "confidence": self.confidence,
                "estimatedTokens": self.estimated_tokens,
            },
        }


def normalize_placement(placement_type: str) -> str:
    return (placement_type or "").strip().lower().replace("-", "_")


def product_type_for_category(category: Optional[str]) -> str:
    """Map a catalog category to the closest product prompt, defaulting to mug."""
    return CATEGORY_PRODUCT_TYPES.get((category or "").strip().lower(), "mug")


def aspect_ratio_for(quality_level: Optional[str]) -> str:
    quality = QUALITY_MODIFIERS.get(quality_level or "")
    return quality["aspect_ratio"] if quality else "1:1"


def negative_prompt() -> str:
    return NEGATIVE_PROMPT


def style_modifiers(preferences: Dict[str, str]) -> List[str]:
    """Resolve style preference names to prompt fragments, skipping unknowns."""
    result = []
    for category, option in (preferences or {}).items():
        fragment = STYLE_OPTIONS.get(category, {}).get(option) if option else None
        if fragment:
            result.append(fragment)
    return result


def estimate_tokens(prompt: str) -> int:
    return math.ceil(len(prompt) / 4)


def calculate_confidence(request: PromptRequest) -> float:
    confidence = 0.8
    if request.product_type in PRODUCT_PROMPTS:
        confidence += 0.1
    if normalize_placement(request.placement_type) in PLACEMENT_PROMPTS:
        confidence += 0.05
    if request.quality_level in QUALITY_MODIFIERS:
        confidence += 0.05
    return round(min(confidence, 1.0), 2)


def generate_prompt(request: PromptRequest, template_id: str = DEFAULT_TEMPLATE) -> GeneratedPrompt:
    """Assemble the final image prompt for a product, placement and quality level.

    Raises ValueError if the template, product type, placement or quality is unknown.
    """
    template = BASE_TEMPLATES.get(template_id)
    product = PRODUCT_PROMPTS.get(request.product_type)
    placement = PLACEMENT_PROMPTS.get(normalize_placement(request.placement_type))
    quality = QUALITY_MODIFIERS.get(request.quality_level)
    if not template or not product or not placement or not quality:
        raise ValueError("Required prompt components not found")

    product_text = f"{product['description']} with {', '.join(product['materials'])}"
    styles = style_modifiers(request.style_preferences)

    final = (
        template
        .replace("{productType}", product_text)
        .replace("{qualityModifiers}", ", ".join(quality["modifiers"]))
        .replace("{styleModifiers}", ", ".join(styles))
        .replace("{placementModifiers}", placement)
    )

    if request.custom_text:
        final += f' Include the text "{request.custom_text}" in the branding.'
    if request.brand_colors:
        final += f" Use brand colors: {', '.join(request.brand_colors)}."
    if request.additional_requirements:
        final += f" Additional requirements: {', '.join(request.additional_requirements)}."

    return GeneratedPrompt(
        final_prompt=final,
        components={
            "basePrompt": template,
            "productPrompt": product_text,
            "placementPrompt": placement,
            "qualityModifiers": list(quality["modifiers"]),
            "styleModifiers": styles,
        },
        confidence=calculate_confidence(request),
        estimated_tokens=estimate_tokens(final),
    )


def generate_ab_variations(request: PromptRequest) -> List[GeneratedPrompt]:
    prompts = []
    for variation in AB_VARIATIONS:
        varied = PromptRequest(
            product_type=request.product_type,
            placement_type=request.placement_type,
            quality_level=request.quality_level,
            style_preferences=dict(request.style_preferences),
            custom_text=request.custom_text,
            brand_colors=list(request.brand_colors),
            additional_requirements=list(request.additional_requirements) + variation["modifiers"],
        )
        prompt = generate_prompt(varied)
        prompt.variation = variation["id"]
        prompts.append(prompt)
    return prompts


def pick_variation(rng: Optional[random.Random] = None) -> dict:
    """Choose an A/B variation according to its weight."""
    rng = rng or random
    weights = [v["weight"] for v in AB_VARIATIONS]
    return rng.choices(AB_VARIATIONS, weights=weights, k=1)[0]
