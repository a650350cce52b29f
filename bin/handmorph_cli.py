#!/usr/bin/env python
"""
Command-line interface for the hand morph application.

This script provides a CLI wrapper around the run_handmorph function, allowing all
parameters to be controlled via command-line arguments.

Examples:
    # Run with default settings (saturn, pinch-controlled)
    python handmorph_cli.py

    # Start on the heart, driven by whole-hand openness
    python handmorph_cli.py --shape heart --interaction-metric openness

    # Relax back to a neutral interaction when the hand leaves the frame
    python handmorph_cli.py --lost-policy decay_to_neutral

    # No camera: watch the shapes morph on their own
    python handmorph_cli.py --no-camera

    # Log the interaction status every frame
    python handmorph_cli.py --log-interaction

    # Log the morph parameters (expansion, chaos, rotation) every frame
    python handmorph_cli.py --log-morph
"""

import argh
from handmorph.script_utils import handmorph_cli


if __name__ == "__main__":
    argh.dispatch_command(handmorph_cli)
