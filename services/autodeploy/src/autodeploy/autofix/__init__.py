"""Auto-Fix: the build/diagnose/patch loop and its deterministic fixes."""
