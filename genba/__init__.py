"""genba - chat-driven action core for construction-site field management."""

__version__ = "0.1.0"
__logo__ = "🏗️"
