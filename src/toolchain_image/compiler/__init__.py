"""Recipe compilers."""

from .emit_dockerfile import emit_dockerfile, render_dockerfile

__all__ = ["emit_dockerfile", "render_dockerfile"]
