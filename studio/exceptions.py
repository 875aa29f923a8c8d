class StoryboardError(Exception):
    """Base class for every error raised by the storyboard studio."""


class RateLimitExceeded(StoryboardError):
    pass


class GenerationError(StoryboardError):
    """The external generation service failed or returned no usable payload."""


class StoryValidationError(StoryboardError):
    """Prompt or LLM story output did not have the required shape."""


class StoryboardNotFound(StoryboardError):
    pass


class StoryboardPermissionDenied(StoryboardError):
    pass


class ApiKeyError(StoryboardError):
    pass
