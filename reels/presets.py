"""
Style presets: the fixed prompt behind each reel style.
Users pick a vibe, we send the provider the actual cinematic direction.
"""

from .models import ReelStyle

STYLE_PROMPTS = {
    ReelStyle.TRENDY: (
        "Create a modern, upbeat video reel with quick cuts, smooth zoom transitions, "
        "and contemporary effects. Add subtle motion blur and dynamic pacing perfect "
        "for social media."
    ),
    ReelStyle.ELEGANT: (
        "Generate an elegant, sophisticated video with smooth fade transitions, gentle "
        "movements, and refined pacing. Use soft lighting effects and graceful camera "
        "movements."
    ),
    ReelStyle.ENERGETIC: (
        "Create a high-energy, dynamic video with fast-paced cuts, zoom effects, and "
        "vibrant transitions. Add motion graphics and rhythmic pacing for maximum "
        "engagement."
    ),
}


def build_prompt(style: ReelStyle, duration: int, photo_count: int) -> str:
    return (
        f"{STYLE_PROMPTS[style]} Duration: {duration} seconds. "
        f"Seamlessly transition between {photo_count} photos creating a cohesive story."
    )


def estimated_time(duration: int) -> str:
    return "1-2 minutes" if duration <= 5 else "2-3 minutes"
