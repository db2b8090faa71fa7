"""Terminal front-ends for inspecting the stored curriculum."""
