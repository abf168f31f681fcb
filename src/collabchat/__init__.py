"""Real-time project chat rooms with an inline AI assistant."""
