"""Command-line helpers for inspecting logs and producing session reports."""
