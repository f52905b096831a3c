import logging

from google import genai
from google.genai import types
from pydantic import ValidationError

from moodboard.model.analysis import AnalysisResult
from moodboard.providers.errors import ProviderException
from moodboard.providers.images import FetchedImage

logger = logging.getLogger(__name__)

PROVIDER = "gemini"

ANALYSIS_PROMPT = """Analyze this image aesthetically. Provide:
1. A creative color palette of 5 hex codes that represent the mood.
2. 5 aesthetic keywords or tags.
3. A short, poetic description of the vibe or mood (max 2 sentences).
Return ONLY a JSON object with keys: "palette" (array of strings), "keywords" (array of strings), "description" (string)."""


async def analyze_image(
    client: genai.Client,
    model: str,
    image: FetchedImage,
) -> AnalysisResult:
    """
    Ask the model for the palette, keywords and mood of one image.

    The image is sent inline. A single request is made.

    Raises:
        ProviderException: If the call fails or the answer is not a valid analysis.
    """
    try:
        response = await client.aio.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                ANALYSIS_PROMPT,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
            ),
        )
    except Exception as e:
        raise ProviderException.transport(PROVIDER, e) from e

    text = response.text
    if not text:
        raise ProviderException.malformed(PROVIDER, "empty model response")

    try:
        return AnalysisResult.model_validate_json(text)
    except ValidationError as e:
        logger.warning("Unparseable analysis from %s: %s", model, text)
        raise ProviderException.malformed(PROVIDER, str(e), text) from e
