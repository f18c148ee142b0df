from __future__ import annotations


class BochiError(RuntimeError):
    pass


class NoCredentialsAvailable(BochiError):
    """No API key configured for the provider being asked to run."""


class ProviderCallFailed(BochiError):
    """Network, HTTP or model error from a vision provider."""


class ProviderDeclined(ProviderCallFailed):
    """The call went through but the model said it could not see the image."""

    def __init__(self, phrase: str, text: str = ""):
        super().__init__(f"provider declined (matched {phrase!r})")
        self.phrase = phrase
        self.text = text


class ReactionFailed(BochiError):
    def __init__(self, emoji: str, reason: str = ""):
        super().__init__(f"reaction {emoji} failed: {reason}" if reason else f"reaction {emoji} failed")
        self.emoji = emoji
