"""Composable transforms applied while compiling a note."""
