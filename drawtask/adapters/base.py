"""
Base Provider Adapter

Defines the abstract interface for all provider adapters and the
tagged result types their raw responses are wrapped in.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Type

import requests

from ..drawtask_logger import RequestTimer, log_request, log_response, log_error
from ..errors import ProviderError, create_provider_error
from ..models import Account, Task

INLINE_IMAGE_MARKER = "data:image"


@dataclass
class GenerationRequest:
    """Provider-independent generation input"""
    prompt: str
    count: int = 1
    reference_image: Optional[str] = None
    base_image: Optional[str] = None
    ref_style_image: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task) -> "GenerationRequest":
        return cls(
            prompt=task.prompt,
            count=task.count or 1,
            reference_image=task.reference_image,
            base_image=task.base_image,
            ref_style_image=task.ref_style_image,
        )


@dataclass
class ProviderResult(ABC):
    """Raw vendor payload tagged with the provider that produced it"""
    provider: str
    raw: Dict = field(default_factory=dict)

    @abstractmethod
    def images(self) -> List[str]:
        """Generated images (URLs or data URIs), possibly empty"""

    def _listed_images(self) -> Optional[List[str]]:
        """An ``images`` array exposed directly by the vendor, used verbatim"""
        images = self.raw.get("images")
        if isinstance(images, list):
            return list(images)
        return None

    def _inline_chat_image(self) -> Optional[str]:
        """A chat completion whose message content is a single data URI"""
        choices = self.raw.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        content = (first.get("message") or {}).get("content")
        if isinstance(content, str) and content.startswith(INLINE_IMAGE_MARKER):
            return content
        return None


@dataclass
class ChatCompletionResult(ProviderResult):
    """Response of a chat-completion style vendor"""

    def images(self) -> List[str]:
        listed = self._listed_images()
        if listed is not None:
            return listed
        inline = self._inline_chat_image()
        return [inline] if inline else []


@dataclass
class ImageGenerationResult(ProviderResult):
    """Response of a direct image-generation vendor"""

    def images(self) -> List[str]:
        listed = self._listed_images()
        if listed is not None:
            return listed
        # Some gateways wrap direct generation in a chat-completion envelope
        inline = self._inline_chat_image()
        return [inline] if inline else []


def normalize_result(result: ProviderResult) -> List[str]:
    """
    Common result list for any provider response.

    An empty list is a valid, successful outcome.
    """
    return result.images()


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each adapter implements the specific logic for:
    - Building the request body for its vendor
    - Wrapping the vendor response in its result type

    Adapters perform exactly one HTTP call per ``generate``; retries are
    not their concern.
    """

    name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    default_endpoint: ClassVar[str] = ""
    result_class: ClassVar[Type[ProviderResult]] = ImageGenerationResult

    def __init__(self, defaults: Optional[Dict] = None, timeout: float = 600):
        """
        Args:
            defaults: Provider defaults from config (endpoint, model_id)
            timeout: Transport timeout in seconds
        """
        self.defaults = defaults or {}
        self.timeout = timeout

    def endpoint_for(self, account: Account) -> str:
        return account.endpoint or self.defaults.get("endpoint") or self.default_endpoint

    def get_headers(self, account: Account) -> Dict:
        """Build standard headers"""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {account.api_key}"
        }

    @abstractmethod
    def build_payload(self, account: Account, request: GenerationRequest) -> Dict:
        """Build the JSON body for the vendor."""

    def build_request(self, account: Account, request: GenerationRequest) -> Dict:
        """
        Build the HTTP request for a generation.

        Returns:
            Dict with keys: url, method, headers, json
        """
        return {
            "url": self.endpoint_for(account),
            "method": "POST",
            "headers": self.get_headers(account),
            "json": self.build_payload(account, request),
        }

    def generate(self, account: Account, request: GenerationRequest) -> ProviderResult:
        """
        Call the vendor once and return its raw response.

        Blocking; run it in a worker thread from async code.

        Raises:
            ProviderError: on transport failure, non-2xx status or a body
                that is not a JSON object
        """
        request_info = self.build_request(account, request)
        url = request_info["url"]

        log_request(
            method=request_info["method"],
            url=url,
            headers=request_info["headers"],
            payload=request_info["json"]
        )

        try:
            with RequestTimer(f"API call to {self.name}") as timer:
                response = requests.post(
                    url,
                    json=request_info["json"],
                    headers=request_info["headers"],
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            log_error(f"{self.display_name or self.name} API call failed", e)
            raise ProviderError(
                message=str(e) or type(e).__name__,
                provider=self.name,
                request_url=url
            ) from e

        is_success = 200 <= response.status_code < 300
        log_response(
            status_code=response.status_code,
            elapsed=timer.elapsed,
            response_text=response.text,
            success=is_success
        )

        if not is_success:
            raise create_provider_error(self.name, response.status_code, response.text or "", url)

        try:
            data: Any = response.json()
        except ValueError as e:
            raise ProviderError(
                message=f"Invalid JSON response: {e}",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text or "",
                request_url=url
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                message=f"Unexpected response type: {type(data).__name__}",
                provider=self.name,
                status_code=response.status_code,
                response_body=json.dumps(data)[:500],
                request_url=url
            )

        return self.result_class(provider=self.name, raw=data)
