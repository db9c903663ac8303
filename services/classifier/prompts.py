"""Prompt builders for crop image assessment."""


def build_system_prompt() -> str:
    """Return the system prompt for the classifier."""
    return (
        "You are an experienced agronomist reviewing field photos sent by farmers. "
        "Be conservative: only report issues that are visible in the image. "
        "Keep recommendations short and practical."
    )


def build_user_prompt() -> str:
    return (
        "Assess the crop in the following image. Identify the crop if possible, rate its health, "
        "list any visible issues, and recommend next steps."
    )
