"""
Edit kinds and the fixed instructions sent to the generative model.

The kind tag chosen by the caller, never the prompt text, decides whether
the chroma-key post-process runs.
"""

from __future__ import annotations

from enum import Enum

REMOVE_BLEMISHES_PROMPT = """**ROLE: You are a precision image restoration AI.** Your only job is to remove minor defects while preserving every other property of the original exactly.

**TASK:** Completely remove small defects on the subject's surface such as fine scratches, dust and small stains.

**ABSOLUTE RULES:**

1.  **Remove defects only**: Do not modify any part of the image other than the defects described above.
2.  **Preserve shape and texture**:
    *   Never change the subject's outline, shape or structure.
    *   Keep the surface's own texture and material. Do not blur it or make it artificially smooth.
3.  **Keep color and lighting consistent**:
    *   Keep the product's original color exactly. Hue, saturation and brightness must not change at all.
    *   Preserve every lighting effect of the original: reflections, shadows and highlights.
4.  **Seamless result**: Retouched areas must be indistinguishable from their surroundings, with no visible traces or editing boundaries.

**OUTPUT:** The original image with only the dust and scratches gone, identical in shape, texture, color and lighting."""

REMOVE_BACKGROUND_MAGENTA_PROMPT = """**ROLE: You are an expert image editing AI.**

**PRIMARY DIRECTIVE: Perfectly isolate the main subject(s) from the background. The subject must remain completely unchanged.**

**OUTPUT SPECIFICATIONS:**
1.  **Subject Preservation:** The main subject(s) of the image must be preserved with 100% accuracy. Do not alter their shape, color, texture, or any details.
2.  **Background Replacement:** The entire background must be replaced with a solid, pure magenta color. The exact hex code for this color is #FF00FF.
3.  **Edge Quality:** The border between the subject and the new magenta background must be sharp and clean. Avoid blurry, feathered, or anti-aliased edges. The transition should be precise.
4.  **No Other Colors in Background:** The background must ONLY contain the color #FF00FF.

**TASK: Identify the primary subject(s), preserve them perfectly, and replace the entire background with solid magenta (#FF00FF).**"""


class EditKind(str, Enum):
    REMOVE_BACKGROUND = "remove_background"
    REMOVE_BLEMISHES = "remove_blemishes"

    @property
    def prompt(self) -> str:
        if self is EditKind.REMOVE_BACKGROUND:
            return REMOVE_BACKGROUND_MAGENTA_PROMPT
        return REMOVE_BLEMISHES_PROMPT

    @property
    def requires_chroma_key(self) -> bool:
        return self is EditKind.REMOVE_BACKGROUND
