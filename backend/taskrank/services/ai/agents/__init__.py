"""AI agents that call the completion service with JSON-only prompts."""
