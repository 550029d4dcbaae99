from admkit.core.prompt.abc import Prompt
from admkit.core.prompt.real import RealPrompt

__all__ = ["Prompt", "RealPrompt"]
