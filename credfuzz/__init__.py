"""Structure-aware fuzzing harness for FIDO2 credential creation.

Submodules are imported on demand so that the atheris entry point can
instrument them.
"""

__version__ = "0.1.0"
