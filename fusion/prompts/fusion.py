ELEMENT_DETAILS_PROMPT = """You are playing an alchemy crafting game. You are given two elements, each with a name and a short description.
Invent a new element by fusing them. The result should follow from the physical properties, symbolic meaning
and common associations of both inputs.

Element 1:
Name: "{name_a}"
Description: "{description_a}"

Element 2:
Name: "{name_b}"
Description: "{description_b}"

Rules:
- The new name is one simple, commonly understood concept, ideally a single word.
- Do NOT glue or blend parts of the input names together, and do not reuse an input name.
- The description is one short sentence about how the element looks or behaves.

Return only JSON with exactly two keys, "name" and "description".
Example: {{"name": "Mud", "description": "A thick, dark brown, wet, clumpy puddle."}}"""

ICON_PROMPT = (
    "A highly detailed, symbolic 3D voxel icon of {name} ({description}). "
    "Translucent glossy frosted glass material revealing a pixelated structure with a smooth shiny surface, "
    "sharp blocky edges, vibrant gradients, subtle lighting and a strong consistent glowing outline. "
    "Centered on a plain transparent-looking background. No text."
)
