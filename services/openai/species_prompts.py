"""Prompt builders for bird identification and field-guide generation."""

from models.identification_media import IdentificationMedia

MAX_CANDIDATES = 3


def build_identify_system_prompt() -> str:
    """Return the system prompt for the identification call."""
    return (
        "You are an expert ornithologist. Identify wild bird species from photographs "
        "and field recordings. Respond with JSON only, never prose."
    )


def build_identify_user_prompt(media: IdentificationMedia) -> str:
    """Return the user prompt tailored to the submitted media kind."""
    subject = "this audio recording of a bird song or call" if media.is_audio else "the bird in this photo"
    return (
        f"Identify {subject}. Return a JSON object with a \"candidates\" array of at most "
        f"{MAX_CANDIDATES} entries ordered from most to least likely. Each entry must contain: "
        "name (common name), scientific_name, confidence (0 to 1), and taxonomy with "
        "family, family_scientific, genus, genus_description, order, order_description. "
        "If no bird is present, return {\"candidates\": []}."
    )


def build_metadata_system_prompt() -> str:
    """Return the system prompt for field-guide generation."""
    return (
        "You are an ornithologist writing concise field-guide entries. "
        "Respond with JSON only."
    )


def build_metadata_user_prompt(scientific_name: str) -> str:
    """Return the user prompt requesting field-guide data for one species."""
    return (
        f"Write a field-guide entry for {scientific_name}. Return a JSON object with a \"birds\" "
        "array holding one object with: name, scientific_name, habitat, habitat_tags (array), "
        "nesting_info {description, location, type}, identification_tips {male, female, juvenile}, "
        "behavior, also_known_as (array), taxonomy {family, family_scientific, genus, "
        "genus_description, order, order_description}, description, diet, diet_tags (array), "
        "conservation_status, key_facts {size, wingspan, wing_shape, tail_shape, colors (array)}. "
        "Write measurements out in words (inches, feet, cm). "
        "MANDATORY: Do not return Unknown for any field; give your best estimate."
    )
