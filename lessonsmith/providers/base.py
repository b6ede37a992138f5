"""Abstract adapters for the text model, image model and media host."""

from abc import ABC, abstractmethod

from config.config_loader import ConfigurationError
from lessonsmith.models import ConversationMessage, TextResponse

# Style profiles appended to image prompts; unknown styles use "educational"
IMAGE_STYLES: dict[str, str] = {
    "educational": "Clean, educational illustration style, clear and simple",
    "diagram": "Technical diagram style, clear labels and structure",
    "realistic": "Photorealistic style, professional quality",
    "illustration": "Hand-drawn illustration style, friendly and approachable",
}
DEFAULT_IMAGE_STYLE = "educational"


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ProviderUnavailable(ConfigurationError):
    """Raised when an adapter is built without its credential."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def style_prompt(description: str, style: str) -> str:
    profile = IMAGE_STYLES.get(style, IMAGE_STYLES[DEFAULT_IMAGE_STYLE])
    return f"{description}. {profile}"


class TextProvider(ABC):
    """Text-generation model adapter."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'claude', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate_text(
        self,
        system_prompt: str,
        messages: list[ConversationMessage],
    ) -> TextResponse:
        """Generate a reply to the conversation.

        Args:
            system_prompt: Instruction text sent as the system prompt.
            messages: Ordered user/assistant turns, last one from the user.

        Returns:
            TextResponse with the generated text and token usage.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...


class ImageProvider(ABC):
    """Image-generation model adapter."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def generate_image(self, description: str, style: str = DEFAULT_IMAGE_STYLE) -> str:
        """Generate an image and return a transient URL or a base64 data URL.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...


class MediaHost(ABC):
    """Media hosting adapter that turns any image source into a durable URL."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def host_image(self, source: str) -> str:
        """Upload a remote URL or data URL and return the permanent URL.

        Raises:
            ProviderError: On download or upload failure.
        """
        ...
