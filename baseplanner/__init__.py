"""Base-building layout planner: snapping, collision and share links."""
