"""
Jimeng direct image-generation adapter.
"""

from typing import Dict

from .base import GenerationRequest, ImageGenerationResult, ProviderAdapter
from ..models import Account


class JimengAdapter(ProviderAdapter):
    name = "jimeng"
    display_name = "Jimeng"
    default_endpoint = "https://api.jimeng.jianying.com/prompt/generate"
    result_class = ImageGenerationResult

    def build_payload(self, account: Account, request: GenerationRequest) -> Dict:
        payload = {
            "prompt": request.prompt,
            "count": request.count or 1,
        }
        if request.base_image:
            payload["base_image"] = request.base_image
        if request.ref_style_image:
            payload["reference_image"] = request.ref_style_image
        return payload
