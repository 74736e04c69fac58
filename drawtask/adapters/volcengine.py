"""
Volcengine (Doubao) chat-completion adapter.

Image generation goes through the chat completions API: one user
message whose content is a text part plus an optional image part.
"""

from typing import Dict, List

from .base import ChatCompletionResult, GenerationRequest, ProviderAdapter
from ..models import Account


class VolcengineAdapter(ProviderAdapter):
    name = "volcengine"
    display_name = "Volcengine"
    default_endpoint = "https://ark.cn-beijing.volces.com/api/v3/chat/completions"
    default_model_id = "ep-20241223111111-xxxxx"
    result_class = ChatCompletionResult

    def model_for(self, account: Account) -> str:
        return account.model_id or self.defaults.get("model_id") or self.default_model_id

    def build_content(self, request: GenerationRequest) -> List[Dict]:
        content = [{"type": "text", "text": request.prompt}]
        if request.reference_image:
            content.append({
                "type": "image_url",
                "image_url": {"url": request.reference_image}
            })
        return content

    def build_payload(self, account: Account, request: GenerationRequest) -> Dict:
        return {
            "model": self.model_for(account),
            "messages": [
                {"role": "user", "content": self.build_content(request)}
            ],
            "stream": False,
        }
